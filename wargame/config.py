"""Runtime configuration from environment variables.

`.env` at the repo root is loaded first (python-dotenv), so a local file can
carry API keys during development. Every setting has a default except the
API key; values are validated by pydantic at startup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from wargame.llm import ProviderName
from wargame.pipeline.executor import OverflowPolicy

ROOT = Path(__file__).parent.parent

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_API_KEY_FALLBACKS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class Settings(BaseModel):
    llm_provider: ProviderName = "anthropic"
    llm_base_url: str = ""
    llm_api_key: str = ""
    llm_model: str = ""
    llm_temperature: float = 0.0
    llm_seed: int | None = None
    llm_max_tokens: int = Field(default=4000, gt=0)
    llm_timeout: float = Field(default=120.0, gt=0)
    llm_structured_outcomes: bool | None = None  # None = adapter default
    llm_reasoning_effort: str | None = None      # openai o-series only

    forecast_concurrency: int = Field(default=4, ge=1)
    forecast_timeout: float = Field(default=120.0, gt=0)
    forecast_overflow: OverflowPolicy = "queue"

    scenario_file: Path | None = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 13013

    def resolved_api_key(self) -> str:
        if self.llm_api_key:
            return self.llm_api_key
        fallback = _API_KEY_FALLBACKS.get(self.llm_provider)
        return os.getenv(fallback, "") if fallback else ""

    def preloaded_scenario(self) -> str | None:
        """Contents of SCENARIO_FILE, used when /scenario is sent without text."""
        if self.scenario_file is None:
            return None
        return self.scenario_file.read_text(encoding="utf-8")


def load_settings(env_file: Path | None = None) -> Settings:
    """Read Settings from the environment (after loading `.env`)."""
    load_dotenv(env_file or ROOT / ".env")
    fields = {
        name: os.environ[name.upper()]
        for name in Settings.model_fields
        if os.getenv(name.upper(), "") != ""
    }
    return Settings.model_validate(fields)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO; keep it to warnings
    logging.getLogger("httpx").setLevel(logging.WARNING)

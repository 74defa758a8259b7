"""Tests for environment configuration."""

import logging
import os

import pytest
from pydantic import ValidationError

from wargame.config import Settings, configure_logging, load_settings

_ENV_NAMES = [name.upper() for name in Settings.model_fields] + ["ANTHROPIC_API_KEY", "OPENAI_API_KEY"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_env_file(tmp_path):
    return tmp_path / "missing.env"


def test_defaults(no_env_file):
    settings = load_settings(no_env_file)
    assert settings.llm_provider == "anthropic"
    assert settings.llm_temperature == 0.0
    assert settings.forecast_concurrency == 4
    assert settings.forecast_overflow == "queue"
    assert settings.port == 13013
    assert settings.preloaded_scenario() is None


def test_reads_environment(monkeypatch, no_env_file):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("LLM_SEED", "42")
    monkeypatch.setenv("LLM_STRUCTURED_OUTCOMES", "false")
    monkeypatch.setenv("FORECAST_CONCURRENCY", "8")
    monkeypatch.setenv("FORECAST_OVERFLOW", "reject")
    settings = load_settings(no_env_file)
    assert settings.llm_provider == "openai"
    assert settings.llm_seed == 42
    assert settings.llm_structured_outcomes is False
    assert settings.forecast_concurrency == 8
    assert settings.forecast_overflow == "reject"


def test_blank_values_fall_back_to_defaults(monkeypatch, no_env_file):
    monkeypatch.setenv("LLM_MODEL", "")
    monkeypatch.setenv("PORT", "")
    settings = load_settings(no_env_file)
    assert settings.llm_model == ""
    assert settings.port == 13013


def test_reads_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LLM_PROVIDER=koboldcpp\nLLM_BASE_URL=http://gpu-box:5001\n", encoding="utf-8")
    try:
        settings = load_settings(env_file)
    finally:
        # load_dotenv writes into os.environ directly
        os.environ.pop("LLM_PROVIDER", None)
        os.environ.pop("LLM_BASE_URL", None)
    assert settings.llm_provider == "koboldcpp"
    assert settings.llm_base_url == "http://gpu-box:5001"


@pytest.mark.parametrize("name, value", [
    ("LLM_PROVIDER", "gemini"),
    ("FORECAST_CONCURRENCY", "0"),
    ("FORECAST_OVERFLOW", "drop"),
    ("LLM_TIMEOUT", "-1"),
])
def test_invalid_values_rejected(monkeypatch, no_env_file, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        load_settings(no_env_file)


def test_api_key_fallback(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    assert Settings().resolved_api_key() == "sk-ant"
    assert Settings(llm_api_key="explicit").resolved_api_key() == "explicit"
    assert Settings(llm_provider="koboldcpp").resolved_api_key() == ""


def test_preloaded_scenario(tmp_path):
    path = tmp_path / "scenario.txt"
    path.write_text("A grounded scenario.", encoding="utf-8")
    assert Settings(scenario_file=path).preloaded_scenario() == "A grounded scenario."


def test_configure_logging_quiets_httpx():
    configure_logging("debug")
    assert logging.getLogger("httpx").level == logging.WARNING

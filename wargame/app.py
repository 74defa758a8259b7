"""Application factory."""

import logging

from fastapi import FastAPI

from wargame.commands import CommandHandler
from wargame.config import Settings, load_settings
from wargame.llm import LLM, build_llm
from wargame.pipeline import BoundedExecutor
from wargame.routes import router
from wargame.sessions import SessionStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, llm: LLM | None = None) -> FastAPI:
    """Build the API. `llm` overrides the backend chosen by `settings`."""
    settings = settings or load_settings()
    llm = llm or build_llm(settings)
    executor = BoundedExecutor(
        max_concurrency=settings.forecast_concurrency,
        timeout=settings.forecast_timeout,
        overflow=settings.forecast_overflow,
    )
    preloaded = settings.preloaded_scenario()
    if preloaded:
        logger.info("Loaded scenario from file: %s", settings.scenario_file)

    sessions = SessionStore()
    app = FastAPI(title="Wargame Facilitator")
    app.state.settings = settings
    app.state.sessions = sessions
    app.state.commands = CommandHandler(sessions, llm, executor, preloaded_scenario=preloaded)
    app.include_router(router, prefix="/api")
    return app

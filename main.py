"""Wargame facilitator — server launcher."""

import argparse
import logging
from pathlib import Path

import uvicorn

from wargame.app import create_app
from wargame.config import configure_logging, load_settings

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Wargame facilitator API")
    parser.add_argument("--scenario-file", type=Path, default=None,
                        help="Scenario used when /scenario is sent without text")
    parser.add_argument("--host", default=None, help="Bind address (default: $HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: $PORT)")
    parser.add_argument("--log-level", default=None, help="Log level (default: $LOG_LEVEL)")
    args = parser.parse_args()

    settings = load_settings()
    overrides = {
        "scenario_file": args.scenario_file,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    settings = settings.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    configure_logging(settings.log_level)

    app = create_app(settings)
    logger.info("Starting API on http://%s:%d ...", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

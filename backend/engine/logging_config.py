"""
logging_config.py — Process-wide logging for the API.

GRADELENS_LOG_LEVEL sets the root level (INFO by default). Setting
GRADELENS_DEBUG_ENGINE=1 drops only the ``engine.*`` loggers to DEBUG, so
per-recompute and timeline traces can be read without the uvicorn and
FastAPI noise that a global DEBUG brings.
"""

import logging
import os
from logging.config import dictConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
ENGINE_LOGGER = "engine"


def configure_logging() -> None:
    """Configure the root handler, then the engine debug switch."""
    level = os.getenv("GRADELENS_LOG_LEVEL", "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )

    if os.getenv("GRADELENS_DEBUG_ENGINE", "0") == "1":
        logging.getLogger(ENGINE_LOGGER).setLevel(logging.DEBUG)

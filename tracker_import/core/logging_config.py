"""
Logging setup for the import service.

Import jobs log one line per rejected row and per checkpoint, so the
``tracker_import`` namespace follows ``settings.log_level`` while SQLAlchemy's
engine logger is held at its own, usually quieter, level.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Optional

from tracker_import.core.config import settings

APP_LOGGER = "tracker_import"
SQL_LOGGER = "sqlalchemy.engine"

_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the console handler and the service loggers once per process.

    Args:
        level: Optional log level override (e.g., "DEBUG"); defaults to
            ``settings.log_level``.
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or settings.log_level).upper()
    sql_level = settings.sql_log_level.upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "loggers": {
                APP_LOGGER: {"level": log_level},
                SQL_LOGGER: {"level": sql_level},
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    _is_configured = True

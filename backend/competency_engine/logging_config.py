"""Process logging for the engine and its batch script."""

from __future__ import annotations

from logging.config import dictConfig
from typing import Any, Dict, Optional

from .config import Settings, get_settings

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

ENGINE_LOGGER = "competency_engine"
TELEMETRY_LOGGER = "competency_engine.telemetry"
HTTP_LOGGERS = ("openai", "httpx")


def logger_levels(settings: Settings) -> Dict[str, str]:
    """Level per named logger; everything else inherits the root level."""
    engine_level = settings.engine_log_level or settings.log_level
    http_level = "DEBUG" if settings.debug_http else "WARNING"
    levels = {
        ENGINE_LOGGER: engine_level,
        TELEMETRY_LOGGER: settings.telemetry_log_level,
        "scripts": engine_level,
        "sqlalchemy.engine": "INFO" if settings.database_echo else "WARNING",
    }
    levels.update({name: http_level for name in HTTP_LOGGERS})
    return levels


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Install one stream handler on the root logger and apply ``logger_levels``."""
    settings = settings or get_settings()
    loggers: Dict[str, Dict[str, Any]] = {
        name: {"level": level, "propagate": True} for name, level in logger_levels(settings).items()
    }

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
            "loggers": loggers,
            "root": {
                "handlers": ["default"],
                "level": settings.log_level,
            },
        }
    )


__all__ = ["DEFAULT_LOG_FORMAT", "configure_logging", "logger_levels"]

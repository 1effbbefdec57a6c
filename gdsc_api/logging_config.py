"""Logging configuration helpers for the API service."""

import logging
from logging.config import dictConfig


class StripQueryStringFilter(logging.Filter):
    """Drop query strings from uvicorn access lines.

    Verification links and OAuth callbacks carry tokens and codes in the
    query string; only the path is logged.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn access args: (client_addr, method, full_path, http_version, status_code)
        if isinstance(record.args, tuple) and len(record.args) == 5:
            args = list(record.args)
            if isinstance(args[2], str):
                args[2] = args[2].split("?", 1)[0]
            record.args = tuple(args)
        return True


def configure_logging(log_level: str = "INFO") -> None:
    """Apply a consistent logging configuration for the API service."""
    log_level = log_level.upper()

    # dictConfig adds filters without removing earlier ones
    access_logger = logging.getLogger("uvicorn.access")
    for existing in [f for f in access_logger.filters if isinstance(f, StripQueryStringFilter)]:
        access_logger.removeFilter(existing)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "filters": {
                "strip_query": {"()": StripQueryStringFilter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": log_level,
                },
            },
            "root": {"handlers": ["console"], "level": log_level},
            # Route uvicorn through the same handler
            "loggers": {
                "uvicorn": {"handlers": ["console"], "level": log_level, "propagate": False},
                "uvicorn.error": {"handlers": ["console"], "level": log_level, "propagate": False},
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": log_level,
                    "filters": ["strip_query"],
                    "propagate": False,
                },
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s level", log_level)

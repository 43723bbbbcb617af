"""Central logging configuration for the example server.

Installs one stdout handler on the root logger so fault-injection events
(``fault_injection.*``) show up next to uvicorn's own access and error logs.
Library users who configure logging themselves never need to call this.
"""
from __future__ import annotations
import logging
from logging.config import dictConfig
from typing import Any, Dict


def _dict_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "resilience": {"level": level, "propagate": True},
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
    }


def configure_logging(level: str = "INFO") -> bool:
    """Configure process-wide logging once.

    Returns False without touching anything when the root logger already has
    handlers (reloaders, test runners, host applications).
    """
    root = logging.getLogger()
    if root.handlers:
        return False
    dictConfig(_dict_config(level.upper()))
    return True


__all__ = ["configure_logging"]

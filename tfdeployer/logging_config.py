"""
Custom logging configuration for the deployer, runner and log receiver
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional


class LogEndpointFilter(logging.Filter):
    """Filter to suppress per-request httpx logs for log endpoint posts."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out the INFO line httpx emits for every relayed line group."""
        if record.name == "httpx" and record.levelno <= logging.INFO:
            message = record.getMessage()
            if message.startswith("HTTP Request: POST"):
                return False
        return True


def get_logging_config(level: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration with subprocess output echoed verbatim."""
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "log_endpoint_filter": {
                "()": LogEndpointFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "output": {
                "format": "%(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "output": {
                "class": "logging.StreamHandler",
                "formatter": "output",
                "stream": "ext://sys.stdout"
            },
            "http": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["log_endpoint_filter"]  # Relay posts are too chatty
            }
        },
        "loggers": {
            "tfdeployer": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "tfdeployer.output": {
                "handlers": ["output"],
                "level": "INFO",
                "propagate": False
            },
            "httpx": {
                "handlers": ["http"],
                "level": level,
                "propagate": False
            },
            "uvicorn": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            }
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level))

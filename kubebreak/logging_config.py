"""
Logging configuration with kubectl noise suppression
"""

import logging
import logging.config
from typing import Any, Dict

from kubebreak.errors import ConfigError


class KubectlNoiseFilter(logging.Filter):
    """Filter to suppress well-known, harmless kubectl warnings."""

    NOISE = (
        "missing the kubectl.kubernetes.io/last-applied-configuration annotation",
        "kubectl apply should be used on resource created by either kubectl create",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out last-applied-configuration warnings from kubectl stderr."""
        if record.name.startswith("kubebreak.kubectl"):
            message = record.getMessage()
            if any(noise in message for noise in self.NOISE):
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration for the given level."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "kubectl_noise_filter": {
                "()": KubectlNoiseFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "filters": ["kubectl_noise_filter"]
            }
        },
        "loggers": {
            "kubebreak": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "httpx": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration."""
    if not isinstance(logging.getLevelName(level.upper()), int):
        raise ConfigError(f"Invalid log level: {level}")
    logging.config.dictConfig(get_logging_config(level))

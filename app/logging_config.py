"""Logging setup shared by the API process and the background jobs."""

import logging
import sys

from app.config import settings

_DEV_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_PROD_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging() -> logging.Logger:
    """Configure the root `app` logger once and return it."""
    is_production = settings.environment == "production"

    level = settings.log_level.upper()
    # Production never logs at DEBUG (provider payloads are noisy)
    if is_production and level == "DEBUG":
        level = "INFO"

    logger = logging.getLogger("app")
    logger.setLevel(getattr(logging, level, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                fmt=_PROD_FORMAT if is_production else _DEV_FORMAT,
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger


def mask_token(value: str, keep: int = 8) -> str:
    """Shorten an identifier (device token, API key) for log lines."""
    if not value:
        return "[empty]"
    if len(value) <= keep:
        return value
    return value[:keep] + "..."

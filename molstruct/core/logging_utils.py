from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with a sensible default configuration."""
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
    return logger


def set_level(level: str | int) -> None:
    """Set the level of every molstruct logger (e.g. from MOLSTRUCT_LOG_LEVEL)."""
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level: {level}")
        level = value
    logging.getLogger("molstruct").setLevel(level)

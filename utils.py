import logging
import os

LOG_LEVEL_ENV_VAR = "LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logger(logger: logging.Logger, log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        # Logger already configured elsewhere; respect existing handlers.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a logger with a stream handler, level taken from LOG_LEVEL."""
    logger = logging.getLogger(name)
    _configure_logger(logger, os.getenv(LOG_LEVEL_ENV_VAR, "INFO"))
    return logger

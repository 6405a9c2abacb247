"""
Application logging configuration.

Every module obtains the shared gateway logger through ``setup_logging()``.
Handlers log the operation, tenant, provider, sizes and duration of each
message so failures can be diagnosed without replaying the message.
"""
import logging
import sys

from files_gateway.config import settings


def setup_logging() -> logging.Logger:
    """
    Configure and return the application logger.

    The logger outputs to stdout with a structured format including:
    - Timestamp
    - Logger name
    - Log level
    - Message

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger("files_gateway")
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    # Prevent duplicate handlers if called multiple times
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger

"""Logging setup shared by the gateway and the terminal client."""

import logging
import os
import re
import sys

from pydantic import BaseModel

# OpenAI secret keys, as they may appear in SDK error messages
SECRET_KEY_PATTERN = re.compile(r"sk-[A-Za-z0-9_\-]{4,}")

QUIET_LOGGERS = ("openai", "httpx", "httpcore", "uvicorn.access")


class LogConfig(BaseModel):
    """Gateway log output settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_loggers: tuple[str, ...] = QUIET_LOGGERS


class SecretRedactingFilter(logging.Filter):
    """Masks anything shaped like an API key before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = SECRET_KEY_PATTERN.sub("sk-***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger to write to stdout with secrets masked."""
    if config is None:
        config = LogConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(SecretRedactingFilter())

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, defaults to the LOG_LEVEL env var

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger

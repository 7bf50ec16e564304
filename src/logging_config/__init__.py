"""Logging configuration.

Console or JSON log output for the money-pies command-line tools, with
OAuth secrets masked before anything is written.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.setup import (
    RedactingFilter,
    configure_logging,
    get_logger,
    redact,
    resolve_config,
)

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "RedactingFilter",
    "configure_logging",
    "get_logger",
    "redact",
    "resolve_config",
]

"""Logging configuration for linetest."""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import TextIO

LOG_LEVEL_ENV = "LINETEST_LOG_LEVEL"

_LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class LoggingConfig:
    """Process-wide logging settings, applied once at startup."""

    level: int = logging.WARNING
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    stream: TextIO = field(default_factory=lambda: sys.stderr)

    @classmethod
    def from_level_name(cls, name: str | None, default: int = logging.WARNING) -> "LoggingConfig":
        """Build a config from a level name such as "DEBUG"; unknown names use ``default``."""
        level = _LOG_LEVEL_MAP.get((name or "").strip().upper(), default)
        return cls(level=level)

    @classmethod
    def from_env(cls, default: int = logging.WARNING) -> "LoggingConfig":
        """Build a config from LINETEST_LOG_LEVEL.

        Examples:
            # Debug level for troubleshooting
            $ LINETEST_LOG_LEVEL=DEBUG linetest

            # Progress messages
            $ LINETEST_LOG_LEVEL=INFO linetest-gui
        """
        return cls.from_level_name(os.environ.get(LOG_LEVEL_ENV), default=default)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure application-wide logging from an explicit config.

    Called once by the entry points; nothing reconfigures logging mid-run.
    """
    if config is None:
        config = LoggingConfig.from_env()

    logging.basicConfig(
        level=config.level,
        format=config.format,
        datefmt=config.datefmt,
        stream=config.stream,
        force=True,  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info("Logging configured: level=%s", logging.getLevelName(config.level))

"""Structured logging utilities for Stagecraft.

This module provides configurable, structured logging with support for:
- JSON format for production/machine parsing
- Human-readable text format for development
- Component-specific log levels
- Log rotation

Example usage:
    >>> from stagecraft.utils.logging import get_logger, LogConfig, configure_logging
    >>>
    >>> configure_logging(LogConfig(log_level="DEBUG", log_format="json"))
    >>> logger = get_logger("cloud")
    >>> logger.info("Saved project", owner="alice", name="demo", files=12)
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Literal, Optional

# Type aliases
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

ROOT_LOGGER_NAME = "stagecraft"
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class LogConfig:
    """Configuration for Stagecraft logging.

    Attributes:
        log_level: Default log level for all components
        log_format: Output format ('text' for human-readable, 'json' for structured)
        log_file: Optional file path for log output
        component_levels: Dictionary of component-specific log levels
        max_file_size_mb: Maximum log file size before rotation (default: 10MB)
        backup_count: Number of rotated log files to keep (default: 5)
        include_timestamp: Whether to include timestamps in output
    """

    log_level: LogLevel = "INFO"
    log_format: LogFormat = "text"
    log_file: Optional[str] = None
    component_levels: Dict[str, LogLevel] = field(default_factory=dict)
    max_file_size_mb: int = 10
    backup_count: int = 5
    include_timestamp: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.log_level.upper() not in _VALID_LEVELS:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. "
                f"Must be one of: {_VALID_LEVELS}"
            )
        if self.log_format not in ("text", "json"):
            raise ValueError(
                f"Invalid log_format '{self.log_format}'. "
                "Must be 'text' or 'json'"
            )
        for component, level in self.component_levels.items():
            if level.upper() not in _VALID_LEVELS:
                raise ValueError(
                    f"Invalid log level '{level}' for component '{component}'. "
                    f"Must be one of: {_VALID_LEVELS}"
                )


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs log records as JSON objects with consistent structure:
    {
        "timestamp": "2024-12-29T10:30:45.123Z",
        "level": "INFO",
        "component": "cloud",
        "message": "Saved project",
        "owner": "alice"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "component": record.name.split(".")[-1],
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    Outputs log records in format:
    2024-12-29 10:30:45 | INFO     | stagecraft.cloud | Saved project [owner=alice]
    """

    def __init__(self, include_timestamp: bool = True) -> None:
        self.include_timestamp = include_timestamp

        if include_timestamp:
            fmt = "%(asctime)s | %(levelname)-8s | %(name)-12s | %(message)s"
        else:
            fmt = "%(levelname)-8s | %(name)-12s | %(message)s"

        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text string."""
        message = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            extra_str = ", ".join(f"{k}={v}" for k, v in extra_fields.items())
            message = f"{message} [{extra_str}]"
        return message


class StagecraftLogger(logging.LoggerAdapter):
    """Logger adapter that turns keyword arguments into structured fields.

    ``logger.info("Saved project", owner="alice")`` attaches
    ``{"owner": "alice"}`` to the record; the formatters render it.
    """

    def __init__(
        self,
        logger: logging.Logger,
        component: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(logger, extra or {})
        self.component = component

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Move non-logging kwargs into the record's extra fields."""
        extra_fields = {}
        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra_fields[key] = kwargs.pop(key)

        if self.extra:
            extra_fields.update(self.extra)

        kwargs.setdefault("extra", {})
        kwargs["extra"]["extra_fields"] = extra_fields

        return msg, kwargs


# Global configuration
_log_config: Optional[LogConfig] = None


def _make_formatter(config: LogConfig) -> logging.Formatter:
    if config.log_format == "json":
        return JSONFormatter()
    return TextFormatter(include_timestamp=config.include_timestamp)


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure the ``stagecraft`` logger tree.

    Call once at application startup. Library code never calls this;
    it only creates loggers.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    global _log_config

    if config is None:
        config = LogConfig()

    _log_config = config

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, config.log_level.upper()))
    root_logger.handlers.clear()

    formatter = _make_formatter(config)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for component, level in config.component_levels.items():
        logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}").setLevel(
            getattr(logging, level.upper())
        )

    root_logger.propagate = False


def get_logger(component: str) -> StagecraftLogger:
    """Get a structured logger for a component.

    Args:
        component: Component name, e.g. ``"persistence.cloud"``.
    """
    return StagecraftLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}"), component)


def get_config() -> Optional[LogConfig]:
    """Get current logging configuration."""
    return _log_config


def set_level(level: LogLevel, component: Optional[str] = None) -> None:
    """Set log level dynamically.

    Args:
        level: New log level
        component: Component to set level for (None for root)
    """
    name = f"{ROOT_LOGGER_NAME}.{component}" if component else ROOT_LOGGER_NAME
    logging.getLogger(name).setLevel(getattr(logging, level.upper()))

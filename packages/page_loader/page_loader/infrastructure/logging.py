"""Logging setup for the page loader.

Library modules only ever call ``get_logger(__name__)`` and attach context
through ``extra={...}``; handlers are installed by the application (or the
CLI) with ``setup_logging``. The JSON formatter turns that context into
top-level fields so ``resource_id``, ``etag`` and ``kind`` are searchable.
"""

import json
import logging
import logging.handlers
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Fields of a bare LogRecord; anything else on a record came in through ``extra``
_STANDARD_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message"}


class LogLevel(str, Enum):
    """Valid log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Root log level")
    format: str = Field(
        default="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        description="Plain-text record format",
    )
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S", description="asctime format")
    json_format: bool = Field(default=False, description="Emit one JSON object per record")
    console_enabled: bool = Field(default=True, description="Log to stderr")
    file_enabled: bool = Field(default=False, description="Log to a rotating file")
    file_path: Path | None = Field(default=None, description="Log file path")
    max_bytes: int = Field(default=10 * 1024 * 1024, gt=0, description="Rotate after this size")
    backup_count: int = Field(default=5, ge=0, description="Rotated files to keep")
    http_client_level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Level for httpx/httpcore, which log every request at INFO",
    )

    @field_validator("file_path")
    @classmethod
    def validate_file_path(cls, v: Path | None) -> Path | None:
        """Create the log directory up front so handler setup cannot fail on it."""
        if v is not None:
            v.parent.mkdir(parents=True, exist_ok=True)
        return v


class StructuredFormatter(logging.Formatter):
    """Render a record, and the context passed through ``extra``, as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_RECORD_FIELDS and key not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    formatter = (
        StructuredFormatter()
        if config.json_format
        else logging.Formatter(config.format, datefmt=config.date_format)
    )

    handlers: list[logging.Handler] = []
    if config.console_enabled:
        handlers.append(logging.StreamHandler(sys.stderr))
    if config.file_enabled and config.file_path:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=config.file_path,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Install handlers on the root logger, replacing any present.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(config.level.value)
    for handler in _build_handlers(config):
        root_logger.addHandler(handler)

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(config.http_client_level.value)

    get_logger(__name__).debug(
        "Logging configured", extra={"config": config.model_dump(mode="json")}
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (usually ``get_logger(__name__)``)."""
    return logging.getLogger(name)

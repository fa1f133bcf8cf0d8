"""
Reverse - Structured Logging Configuration

Configures structured JSON logging:
- JSON format for easy parsing and aggregation
- Log rotation to prevent disk space issues
- Console and optional file handlers

Contract modules log with ``extra={"event": ...}`` payloads; those fields
land at the top level of every JSON record.

Usage:
    from reverse.core.logging_config import setup_logging

    logger = setup_logging(name="reverse", log_file="/var/log/reverse/rev.json")
    logger.info("Tokens purchased", extra={"event": "seller.purchase"})
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from . import config


class CustomJsonFormatter(JsonFormatter):
    """
    JSON formatter that adds timestamp, environment, service and source
    location to every record.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: str | None = None,
        service_name: str = "reverse",
    ):
        super().__init__(fmt=fmt)
        self.include_timestamp = timestamp
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if self.include_timestamp:
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "reverse",
    log_file: str | None = None,
    level: str | None = None,
    environment: str | None = None,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Setup structured JSON logging.

    Args:
        name: Logger name (the package logger covers every module)
        log_file: Path to JSON log file (defaults to REV_LOG_FILE)
        level: Logging level (defaults to REV_LOG_LEVEL)
        environment: Environment identifier (defaults to REV_ENVIRONMENT)
        enable_console: Whether to log to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    level_name = (level or config.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, None)
    if not isinstance(log_level, int):
        raise config.ConfigurationError(f"Unknown log level {level_name!r}")
    log_file = log_file or config.LOG_FILE

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = CustomJsonFormatter(
        environment=environment or config.ENVIRONMENT,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring the package logger on first use."""
    root_name = name.split(".")[0]
    if not logging.getLogger(root_name).handlers:
        setup_logging(name=root_name)
    return logging.getLogger(name)

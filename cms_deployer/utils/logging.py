"""
Logging setup for the CMS Deployer.

This module provides rich console logging for the CLI, structured JSON
logging for machine consumption, and a run logger that records each
pipeline stage with its duration.
"""

import json
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler


class LogLevel(str, Enum):
    """Log levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogCategory(str, Enum):
    """Categories for structured logging."""
    SYSTEM = "system"
    PIPELINE = "pipeline"
    DETECTION = "detection"
    ASSEMBLY = "assembly"
    PREPARATION = "preparation"
    HANDOFF = "handoff"
    DNS = "dns"
    CLI = "cli"


_RECORD_ATTRIBUTES = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'exc_info', 'exc_text', 'stack_info', 'taskName', 'message',
}


@dataclass
class LogEntry:
    """Structured log entry with metadata."""
    timestamp: datetime = field(default_factory=datetime.now)
    level: LogLevel = LogLevel.INFO
    category: LogCategory = LogCategory.SYSTEM
    message: str = ""
    run_id: Optional[str] = None
    stage: Optional[str] = None
    duration: Optional[float] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        """Convert log entry to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = getattr(record, 'log_entry', None)

        if log_entry and isinstance(log_entry, LogEntry):
            return log_entry.to_json()

        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created),
            level=LogLevel(record.levelname),
            message=record.getMessage(),
            metadata={
                'logger': record.name,
                'function': record.funcName,
                'line': record.lineno,
            }
        )

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_entry.metadata[key] = value

        return log_entry.to_json()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    max_log_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Set up logging for the CMS Deployer.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        rich_console: Whether to use Rich console handler for CLI
        structured_logging: Whether to use structured JSON logging
        max_log_size: Maximum log file size before rotation
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("cms_deployer")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if rich_console and not structured_logging:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if structured_logging:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))

    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=backup_count
        )
        if structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"cms_deployer.{name}")


class DeployLogger:
    """Run-scoped logger that records pipeline stages."""

    def __init__(self, run_id: str, structured: bool = False):
        self.run_id = run_id
        self.structured = structured
        self.logger = get_logger(f"run.{run_id}")

    def _create_log_entry(
        self,
        level: LogLevel,
        message: str,
        category: LogCategory,
        stage: Optional[str] = None,
        duration: Optional[float] = None,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LogEntry:
        return LogEntry(
            level=level,
            category=category,
            message=message,
            run_id=self.run_id,
            stage=stage,
            duration=duration,
            error_code=error_code,
            metadata=metadata or {}
        )

    def _log(
        self,
        level: LogLevel,
        message: str,
        category: LogCategory = LogCategory.PIPELINE,
        **kwargs
    ):
        log_method = getattr(self.logger, level.value.lower())
        if self.structured:
            log_entry = self._create_log_entry(level, message, category, **kwargs)
            log_method(message, extra={'log_entry': log_entry})
        else:
            log_method(message)

    def info(self, message: str, category: LogCategory = LogCategory.PIPELINE, **kwargs):
        self._log(LogLevel.INFO, message, category, **kwargs)

    def warning(self, message: str, category: LogCategory = LogCategory.PIPELINE, **kwargs):
        self._log(LogLevel.WARNING, message, category, **kwargs)

    def error(self, message: str, category: LogCategory = LogCategory.PIPELINE, **kwargs):
        self._log(LogLevel.ERROR, message, category, **kwargs)

    def stage_start(self, stage: str):
        """Log the start of a pipeline stage."""
        self.info(f"Stage started: {stage}", stage=stage)

    def stage_complete(self, stage: str, duration: float):
        """Log the completion of a pipeline stage."""
        self.info(
            f"Stage completed: {stage} ({duration:.2f}s)",
            stage=stage,
            duration=duration,
        )

    def stage_failed(self, stage: str, error: str, error_code: Optional[str] = None):
        """Log a failed pipeline stage."""
        self.error(
            f"Stage failed: {stage} - {error}",
            stage=stage,
            error_code=error_code,
        )

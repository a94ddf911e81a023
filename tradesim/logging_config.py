"""Centralized logging configuration for the simulation engine."""

import json
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(Enum):
    """Log format types."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"
    COMPACT = "compact"


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: LogLevel = LogLevel.INFO
    format_type: LogFormat = LogFormat.DETAILED
    log_to_console: bool = True
    log_file: Optional[Path] = None
    max_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    colorize_console: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> "LoggingConfig":
        """Build from the ``logging`` section of engine settings."""
        return cls(
            level=LogLevel(settings.level),
            format_type=LogFormat(settings.format.value),
            log_file=settings.log_file,
        )


class ColorCodes:
    """ANSI color codes for console output."""

    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    LEVEL_COLORS = {
        "DEBUG": CYAN,
        "INFO": GREEN,
        "WARNING": YELLOW,
        "ERROR": RED,
        "CRITICAL": f"{BOLD}{RED}",
    }


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    _STANDARD_KEYS = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "asctime", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            k: v for k, v in record.__dict__.items()
            if k not in self._STANDARD_KEYS and not k.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names for console."""

    def __init__(self, fmt: str = None, datefmt: str = None, colorize: bool = True):
        super().__init__(fmt, datefmt)
        self.colorize = colorize

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors."""
        if not self.colorize:
            return super().format(record)

        color = ColorCodes.LEVEL_COLORS.get(record.levelname, "")
        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{ColorCodes.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


class CompactFormatter(logging.Formatter):
    """Compact log format for long simulation runs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format compactly."""
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")
        return f"{ts} {record.levelname[0]} [{record.name}] {record.getMessage()}"


@dataclass
class LoggerRegistry:
    """Registry that owns root handler setup."""

    _config: LoggingConfig = field(default_factory=LoggingConfig)

    def configure(self, config: LoggingConfig = None) -> None:
        """Configure logging system."""
        if config:
            self._config = config

        root_logger = logging.getLogger()
        level = getattr(logging, self._config.level.value)
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if self._config.log_to_console:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(level)
            handler.setFormatter(self._create_formatter(for_console=True))
            root_logger.addHandler(handler)

        if self._config.log_file:
            root_logger.addHandler(self._create_file_handler(level))

    def _create_file_handler(self, level: int) -> logging.Handler:
        """Create rotating file handler."""
        log_file = Path(self._config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=self._config.max_bytes,
            backupCount=self._config.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(self._create_formatter(for_console=False))
        return handler

    def _create_formatter(self, for_console: bool) -> logging.Formatter:
        """Create formatter based on config."""
        format_type = self._config.format_type

        if format_type == LogFormat.JSON:
            return JsonFormatter()

        if format_type == LogFormat.COMPACT:
            return CompactFormatter()

        if format_type == LogFormat.SIMPLE:
            fmt = "%(levelname)s: %(message)s"
        else:  # DETAILED
            fmt = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

        if for_console and self._config.colorize_console:
            return ColoredFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S", colorize=True)
        return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


@dataclass
class ContextLogger:
    """Logger that appends key=value context to each message."""

    logger: logging.Logger
    context: Dict[str, Any] = field(default_factory=dict)

    def with_context(self, **kwargs) -> "ContextLogger":
        """Create new logger with additional context."""
        return ContextLogger(self.logger, {**self.context, **kwargs})

    def _format_message(self, msg: str) -> str:
        if not self.context:
            return msg
        context_str = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{msg} | {context_str}"

    def debug(self, msg: str, *args, **kwargs):
        self.logger.debug(self._format_message(msg), *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.logger.info(self._format_message(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.logger.warning(self._format_message(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.logger.error(self._format_message(msg), *args, **kwargs)


_registry = LoggerRegistry()


def configure_logging(config: LoggingConfig = None) -> None:
    """Configure global logging."""
    _registry.configure(config)


def get_context_logger(name: str, **context) -> ContextLogger:
    """Get a context logger without touching handler setup."""
    return ContextLogger(logging.getLogger(name), context)

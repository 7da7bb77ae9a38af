"""
AgriIntel Logging Configuration

Routes structlog through stdlib logging so the service client layer writes:
- ``agriintel.log`` with every record at the configured level
- ``errors.log`` with failed requests only
- an optional colored console stream

Request, performance and error records go through the helpers at the bottom
of this module, which stay silent until ``setup_logging`` has run.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

# Third-party loggers that are too chatty below WARNING
EXTERNAL_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.internal", "asyncio")

# Per-request pipeline internals, only shown at DEBUG
PIPELINE_LOGGERS = ("agriintel.api.cache", "agriintel.api.rate_limiter", "agriintel.api.deduplicator")

SENSITIVE_FIELDS = frozenset({"key", "api_key", "apikey", "authorization", "token", "password"})

REDACTED = "***"


def redact_sensitive_fields(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask credential-looking fields, including inside dict-valued fields such as headers."""
    for field, value in list(event_dict.items()):
        if field.lower() in SENSITIVE_FIELDS:
            event_dict[field] = REDACTED
        elif isinstance(value, dict):
            event_dict[field] = {
                k: REDACTED if str(k).lower() in SENSITIVE_FIELDS else v
                for k, v in value.items()
            }
    return event_dict


class AgriIntelLogger:
    """Owns the root logger's handlers for the lifetime of the process."""

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: str = "INFO",
        enable_console: bool = True,
        max_file_size: int = 10 * 1024 * 1024,
        backup_count: int = 5
    ):
        """
        Configure structlog and install the handlers.

        Args:
            log_dir: Directory for the rotating log files
            log_level: Level name for the root logger and main file
            enable_console: Also log to stdout
            max_file_size: Bytes per file before rotation
            backup_count: Rotated files to keep
        """
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper())
        self.enable_console = enable_console
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._configure_structlog()

        root = logging.getLogger()
        root.handlers.clear()
        for handler in self._build_handlers():
            root.addHandler(handler)
        root.setLevel(self.log_level)

        self._quiet_noisy_loggers()

        self.requests_logger = structlog.get_logger("agriintel.requests")
        self.performance_logger = structlog.get_logger("agriintel.performance")
        self.errors_logger = structlog.get_logger("agriintel.errors")

    def _configure_structlog(self):
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="ISO"),
                redact_sensitive_fields,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _build_handlers(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = [
            self._rotating_handler("agriintel.log", self.log_level),
            self._rotating_handler("errors.log", logging.ERROR),
        ]

        if self.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(self.log_level)
            console.setFormatter(structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
            ))
            handlers.append(console)

        return handlers

    def _rotating_handler(self, filename: str, level: int) -> logging.handlers.RotatingFileHandler:
        handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding="utf-8"
        )
        handler.setLevel(level)
        handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
        ))
        return handler

    def _quiet_noisy_loggers(self):
        for name in EXTERNAL_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        if self.log_level != logging.DEBUG:
            for name in PIPELINE_LOGGERS:
                logging.getLogger(name).setLevel(logging.INFO)

    def log_api_request(self, method: str, url: str, status_code: int, duration: float, **kwargs):
        self.requests_logger.info(
            "api_request",
            method=method,
            url=url,
            status_code=status_code,
            duration_seconds=round(duration, 4),
            **kwargs
        )

    def log_performance(self, operation: str, duration: float, **kwargs):
        self.performance_logger.info(
            "performance_metric",
            operation=operation,
            duration_seconds=round(duration, 4),
            **kwargs
        )

    def log_error(self, error: Exception, context: Dict[str, Any], **kwargs):
        self.errors_logger.error(
            "request_error",
            error_type=type(error).__name__,
            error_message=str(error),
            context=context,
            **kwargs
        )


_logger_instance: Optional[AgriIntelLogger] = None


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    enable_console: bool = True,
    **kwargs
) -> AgriIntelLogger:
    """
    Install the process-wide logging configuration.

    Args:
        log_dir: Directory for the rotating log files
        log_level: Root log level name
        enable_console: Also log to stdout
        **kwargs: Passed to AgriIntelLogger (max_file_size, backup_count)

    Returns:
        The configured AgriIntelLogger
    """
    global _logger_instance

    _logger_instance = AgriIntelLogger(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        **kwargs
    )
    return _logger_instance


def log_api_request(method: str, url: str, status_code: int, duration: float, **kwargs):
    """Record one HTTP exchange."""
    if _logger_instance:
        _logger_instance.log_api_request(method, url, status_code, duration, **kwargs)


def log_performance(operation: str, duration: float, **kwargs):
    """Record how long a completed operation took."""
    if _logger_instance:
        _logger_instance.log_performance(operation, duration, **kwargs)


def log_error(error: Exception, context: Dict[str, Any], **kwargs):
    """Record a failed operation in ``errors.log``."""
    if _logger_instance:
        _logger_instance.log_error(error, context, **kwargs)

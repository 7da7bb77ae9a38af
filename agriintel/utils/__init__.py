"""Utilities for AgriIntel."""

from .logging_config import (
    AgriIntelLogger,
    log_api_request,
    log_error,
    log_performance,
    redact_sensitive_fields,
    setup_logging,
)

__all__ = [
    "AgriIntelLogger",
    "setup_logging",
    "log_api_request",
    "log_performance",
    "log_error",
    "redact_sensitive_fields",
]

"""Operational logging and request auditing."""

from .audit import AuditEvent, JsonlAuditLogger, sanitize_arguments, utc_timestamp
from .setup import LOG_LEVEL_ENV, configure_logging, resolve_log_level

__all__ = [
    "AuditEvent",
    "JsonlAuditLogger",
    "LOG_LEVEL_ENV",
    "configure_logging",
    "resolve_log_level",
    "sanitize_arguments",
    "utc_timestamp",
]

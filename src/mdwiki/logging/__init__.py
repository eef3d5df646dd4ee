"""Structured audit logging."""

from .audit import (
    AUDIT_FILENAME,
    AuditEvent,
    JsonlAuditLogger,
    sanitize_arguments,
    summarize_result,
    utc_timestamp,
)

__all__ = [
    "AUDIT_FILENAME",
    "AuditEvent",
    "JsonlAuditLogger",
    "sanitize_arguments",
    "summarize_result",
    "utc_timestamp",
]

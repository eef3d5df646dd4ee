"""Path safety and size limits."""

from .paths import PathBlockedError, is_within_root, normalize_document_path
from .policy import SecurityLimits, enforce_document_size

__all__ = [
    "PathBlockedError",
    "SecurityLimits",
    "enforce_document_size",
    "is_within_root",
    "normalize_document_path",
]

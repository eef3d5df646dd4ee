"""Wiki tool interfaces and registrations."""

from .builtin import register_builtin_tools
from .registry import UNKNOWN_TOOL, ToolDispatchError, ToolHandler, ToolRegistry

__all__ = [
    "UNKNOWN_TOOL",
    "ToolDispatchError",
    "ToolHandler",
    "ToolRegistry",
    "register_builtin_tools",
]

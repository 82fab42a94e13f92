from .base import ToolHandler, ToolResult
from .loader import get_handler, list_handlers, refresh_registry

__all__ = ["ToolHandler", "ToolResult", "get_handler", "list_handlers", "refresh_registry"]

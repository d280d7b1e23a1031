"""Tool catalog, dispatcher and output formatting."""

from .catalog import TOOL_SPECS, ToolName, ToolSpec, list_tools, parse_tool_name, tool_definitions
from .dispatcher import CallContext, ToolDispatcher

__all__ = [
    "TOOL_SPECS", "ToolName", "ToolSpec", "list_tools", "parse_tool_name",
    "tool_definitions", "CallContext", "ToolDispatcher",
]

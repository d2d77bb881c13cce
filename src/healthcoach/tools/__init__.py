"""Tools package for healthcoach."""

from .registry import EmptyArguments, RegisteredTool, ToolDescriptor, ToolRegistry, ToolResult

__all__ = ["EmptyArguments", "RegisteredTool", "ToolDescriptor", "ToolRegistry", "ToolResult"]

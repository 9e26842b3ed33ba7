"""Repository-confined tools exposed to the reasoning service."""

from .base_tool import BaseTool
from .dispatcher import ToolCall, ToolDispatcher
from .file_tools import ReadFileTool, WriteFileTool
from .shell_tool import RunShellTool

__all__ = [
    "BaseTool",
    "ReadFileTool",
    "RunShellTool",
    "ToolCall",
    "ToolDispatcher",
    "WriteFileTool",
]

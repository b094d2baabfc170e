"""Tools package: the registry and the crate documentation query tool."""
from cratedocs.tools.registry import (
    CrateMismatchError,
    InvalidToolArgumentsError,
    QueryFailedError,
    Tool,
    ToolError,
    ToolRegistry,
    UnknownToolError,
)
from cratedocs.tools.query_docs import build_query_tool

__all__ = [
    "CrateMismatchError",
    "InvalidToolArgumentsError",
    "QueryFailedError",
    "Tool",
    "ToolError",
    "ToolRegistry",
    "UnknownToolError",
    "build_query_tool",
]

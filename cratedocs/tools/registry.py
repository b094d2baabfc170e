"""Tool registry for MCP tool calling.

Tools are plain dataclasses pairing a pydantic input model with an async
handler. Every request-scoped failure is a ToolError carrying the JSON-RPC
error code reported to the caller.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger()


class ToolError(Exception):
    """Base class for errors reported back to the calling agent."""

    code: int = INTERNAL_ERROR


class UnknownToolError(ToolError):
    code = METHOD_NOT_FOUND


class InvalidToolArgumentsError(ToolError):
    code = INVALID_PARAMS


class CrateMismatchError(ToolError):
    code = INVALID_PARAMS


class QueryFailedError(ToolError):
    code = INTERNAL_ERROR


@dataclass
class Tool:
    """Tool definition with input schema and handler.

    ``precheck`` sees the raw arguments before validation and may raise a
    ToolError that takes precedence over validation errors.
    """
    name: str
    description: str
    input_model: type[BaseModel]
    input_schema: Dict[str, Any]
    handler: Callable[[BaseModel], Awaitable[str]]
    precheck: Optional[Callable[[Dict[str, Any]], None]] = None


class ToolRegistry:
    """Registry for available tools."""

    def __init__(self):
        self.tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self.tools[tool.name] = tool
        logger.info("tool_registered", tool_name=tool.name)

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self.tools.get(name)

    def list_tools(self) -> list[Tool]:
        """List all registered tools."""
        return list(self.tools.values())

    async def execute_tool(self, tool_name: str, args: Optional[Dict[str, Any]]) -> str:
        """Validate arguments and run a tool.

        Args:
            tool_name: Name of the tool to execute
            args: Arguments supplied by the caller

        Returns:
            The tool's text response

        Raises:
            UnknownToolError: If no tool has that name
            InvalidToolArgumentsError: If arguments fail validation
            ToolError: Whatever the precheck or handler raises
        """
        tool = self.get_tool(tool_name)

        if not tool:
            logger.error("tool_not_found", tool_name=tool_name)
            raise UnknownToolError(f"Unknown tool: {tool_name}")

        if tool.precheck:
            tool.precheck(args or {})

        try:
            validated_input = tool.input_model.model_validate(args or {})
        except ValidationError as e:
            logger.warning("tool_arguments_invalid", tool_name=tool_name, errors=e.error_count())
            raise InvalidToolArgumentsError(f"Invalid arguments for {tool_name}: {e}") from e

        result = await tool.handler(validated_input)

        logger.info(
            "tool_executed",
            tool_name=tool_name,
            result_preview=result[:100],
        )

        return result

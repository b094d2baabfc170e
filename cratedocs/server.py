"""MCP server exposing the tool registry over the low-level mcp Server."""
import structlog
from mcp import types
from mcp.server import Server
from mcp.shared.exceptions import McpError

from cratedocs import __version__
from cratedocs.tools.registry import ToolError, ToolRegistry

logger = structlog.get_logger()

SERVER_NAME = "rust-docs-server"


def create_server(registry: ToolRegistry) -> Server:
    """Build an MCP server advertising and dispatching the registry's tools.

    Tool errors are returned to the caller as JSON-RPC errors with the
    tool error's code, the server keeps serving afterwards.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in registry.list_tools()
        ]

    # Registered directly so ToolError codes reach the caller as JSON-RPC errors
    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        name = request.params.name
        logger.info("tool_call_received", tool_name=name)

        try:
            text = await registry.execute_tool(name, request.params.arguments)
        except ToolError as e:
            logger.warning(
                "tool_call_rejected",
                tool_name=name,
                error_type=type(e).__name__,
                code=e.code,
            )
            raise McpError(types.ErrorData(code=e.code, message=str(e))) from e

        return types.ServerResult(
            types.CallToolResult(
                content=[types.TextContent(type="text", text=text)],
                isError=False,
            )
        )

    server.request_handlers[types.CallToolRequest] = call_tool

    return server

"""Entry point: build or load the crate index, then serve MCP on stdio."""
from dotenv import load_dotenv

# Load .env before anything reads configuration from the environment
load_dotenv()

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from mcp.server.stdio import stdio_server

from cratedocs import config
from cratedocs.llm_client import OpenAIClient
from cratedocs.rag.index_store import IndexStore, IndexStoreError
from cratedocs.rag.retriever import Retriever
from cratedocs.server import create_server
from cratedocs.tools import ToolRegistry, build_query_tool

logger = structlog.get_logger()


def configure_logging(level: str) -> None:
    """Configure structured logging on stderr; stdout carries MCP frames."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Answer questions about a Rust crate's documentation over MCP (stdio)",
    )
    parser.add_argument(
        "--docs-path",
        default=None,
        help="Documentation root holding one directory per crate (env: DOCS_PATH)",
    )
    parser.add_argument(
        "--crate",
        default=None,
        help="Crate to serve (env: CRATE_NAME)",
    )
    parser.add_argument(
        "--all",
        dest="include_all",
        action="store_true",
        help="Index every documentation page instead of only deduplicated pages (env: INCLUDE_ALL_DOCS)",
    )
    parser.add_argument(
        "--storage-dir",
        type=Path,
        default=None,
        help=f"Directory for persisted indexes (default: {config.STORAGE_DIR})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Log level (default: {config.LOG_LEVEL})",
    )
    return parser.parse_args(argv)


async def build_registry(args: argparse.Namespace) -> ToolRegistry:
    """Validate configuration, make the index Ready and register the query tool.

    Raises:
        config.ConfigError: If a required setting is missing
        IndexStoreError: If the index can't be loaded or rebuilt
    """
    docs_path = args.docs_path or config.DOCS_PATH
    crate_name = args.crate or config.CRATE_NAME
    include_all = args.include_all or config.INCLUDE_ALL_DOCS

    config.check_required(docs_path, crate_name, config.OPENAI_API_KEY)

    provider = OpenAIClient(api_key=config.OPENAI_API_KEY)

    store = IndexStore(
        docs_path=Path(docs_path),
        crate_name=crate_name,
        provider=provider,
        storage_root=args.storage_dir,
        include_all=include_all,
    )
    vector_store = await store.initialize()

    retriever = Retriever(vector_store=vector_store, provider=provider, crate_name=crate_name)

    registry = ToolRegistry()
    registry.register(build_query_tool(crate_name, retriever))
    return registry


async def serve(args: argparse.Namespace) -> int:
    """Run the server until stdin closes. Returns the process exit code."""
    try:
        registry = await build_registry(args)
    except (config.ConfigError, IndexStoreError) as e:
        logger.error("startup_failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    server = create_server(registry)

    logger.info("mcp_server_starting", tools=[tool.name for tool in registry.list_tools()])

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )

    logger.info("mcp_server_stopped")
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level or config.LOG_LEVEL)
    sys.exit(asyncio.run(serve(args)))


if __name__ == "__main__":
    run()

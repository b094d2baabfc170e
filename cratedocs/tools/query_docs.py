"""The crate documentation query tool."""
from typing import Any, Dict

import structlog
from pydantic import BaseModel, Field

from cratedocs.rag.retriever import Retriever
from cratedocs.tools.registry import CrateMismatchError, QueryFailedError, Tool

logger = structlog.get_logger()


class QueryDocsInput(BaseModel):
    question: str = Field(min_length=1)
    crate: str


def tool_name_for(crate_name: str) -> str:
    return f"query_rust_docs_{crate_name}"


def tool_description(crate_name: str) -> str:
    return (
        f"Query the official Rust documentation for the '{crate_name}' crate. "
        f"Use this tool to retrieve detailed information about '{crate_name}''s API, "
        "including structs, traits, enums, constants, and functions. Ideal for answering "
        f"technical questions about how to use '{crate_name}' in Rust projects, such as "
        "understanding specific methods, configuration options, or integration details. "
        "Also use it to verify API usage in written code and to resolve Clippy or lint "
        f"errors, e.g. \"How do I configure routing in {crate_name}?\" or "
        f"\"Is this {crate_name} method call correct?\""
    )


def tool_input_schema(crate_name: str) -> Dict[str, Any]:
    """JSON schema advertised for the tool input."""
    return {
        "type": "object",
        "properties": {
            "question": {
                "type": "string",
                "description": (
                    f"The specific question about the '{crate_name}' crate's API or usage, "
                    f"such as \"How do I use {crate_name} for async operations?\""
                ),
            },
            "crate": {
                "type": "string",
                "description": (
                    f"The name of the crate to query. Must match the current crate, which is "
                    f"'{crate_name}'."
                ),
                "enum": [crate_name],
            },
        },
        "required": ["question", "crate"],
    }


def build_query_tool(crate_name: str, retriever: Retriever) -> Tool:
    """Create the query tool bound to one crate and its retriever."""

    def check_crate(args: Dict[str, Any]) -> None:
        # Runs before validation: a wrong crate wins over any other argument error
        crate = args.get("crate")
        if crate is not None and crate != crate_name:
            logger.warning("crate_mismatch", expected=crate_name, received=crate)
            raise CrateMismatchError(
                f"This server only supports queries for '{crate_name}', not '{crate}'"
            )

    async def handler(args: QueryDocsInput) -> str:
        try:
            response = await retriever.query(args.question)
        except Exception as e:
            logger.exception("query_failed", crate=crate_name, error=str(e))
            raise QueryFailedError("Failed to query Rust documentation") from e

        return f"From {crate_name} docs: {response.answer}"

    return Tool(
        name=tool_name_for(crate_name),
        description=tool_description(crate_name),
        input_model=QueryDocsInput,
        input_schema=tool_input_schema(crate_name),
        handler=handler,
        precheck=check_crate,
    )

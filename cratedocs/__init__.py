"""Question answering over a Rust crate's generated documentation, served over MCP."""

__version__ = "1.0.0"

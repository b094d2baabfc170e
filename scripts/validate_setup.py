#!/usr/bin/env python
"""Validate setup - check dependencies, configuration, docs and provider access."""
import sys
import asyncio
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("Crate Docs MCP Server - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 11):
        print_success("Python version >= 3.11")
    else:
        print_error("Python version < 3.11 (required)")
        errors.append("Python version too old")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("mcp", "MCP Python SDK"),
        ("httpx", "HTTP client"),
        ("faiss", "FAISS vector store"),
        ("numpy", "Numerical arrays"),
        ("bs4", "HTML parsing"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
        ("dotenv", "Environment files"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Configuration
    print_section("3. Configuration")

    try:
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from cratedocs import config

        config.check_required(config.DOCS_PATH, config.CRATE_NAME, config.OPENAI_API_KEY)
        print_success("Required settings present")
        print_info(f"  Crate: {config.CRATE_NAME}")
        print_info(f"  Docs path: {config.DOCS_PATH}")
        print_info(f"  Chat model: {config.CHAT_MODEL}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
        print_info(f"  Provider URL: {config.OPENAI_API_BASE}")
        print_info(f"  Storage directory: {config.storage_dir_for(config.CRATE_NAME)}")
    except Exception as e:
        print_error(f"Configuration invalid: {e}")
        errors.append("Configuration invalid")
        return errors, warnings

    # 4. Documentation directory
    print_section("4. Documentation")

    from cratedocs.rag.corpus import crate_docs_dir, discover_candidate_files, select_crate_files

    crate_dir = crate_docs_dir(Path(config.DOCS_PATH), config.CRATE_NAME)
    try:
        candidates = discover_candidate_files(crate_dir)
        selected = select_crate_files(Path(config.DOCS_PATH), config.CRATE_NAME, config.INCLUDE_ALL_DOCS)
        print_success(f"Crate docs found: {crate_dir}")
        print_info(f"  Candidate pages: {len(candidates)}")
        print_info(f"  Selected pages: {len(selected)}")
        if not selected:
            print_warning("No pages selected; the index will be empty (try INCLUDE_ALL_DOCS=true)")
            warnings.append("Empty corpus")
    except FileNotFoundError as e:
        print_error(str(e))
        print_info("  Run: cargo doc, then point DOCS_PATH at target/doc")
        errors.append("Crate docs missing")

    # 5. Provider API
    print_section("5. Provider API")

    from cratedocs.llm_client import OpenAIClient, embedding_vectors

    client = OpenAIClient(api_key=config.OPENAI_API_KEY, timeout=10.0)
    try:
        models = await client.list_models()
        print_success(f"Provider reachable ({len(models)} models)")
        for model in (config.EMBEDDING_MODEL, config.CHAT_MODEL):
            if models and model not in models:
                print_warning(f"Model '{model}' not listed by provider")
                warnings.append(f"Model not listed: {model}")
    except Exception as e:
        print_warning(f"Could not list models: {e}")
        warnings.append("Model listing failed")

    try:
        response = await client.embeddings(["test"])
        dimension = len(embedding_vectors(response, 1)[0])
        print_success(f"Embedding API working (dimension: {dimension})")
    except Exception as e:
        print_error(f"Provider API test failed: {e}")
        errors.append(f"API test failed: {e}")

    # 6. Summary
    print_section("Summary")

    if not errors:
        print_success(f"All checks passed! ✨")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)

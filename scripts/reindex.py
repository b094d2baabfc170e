#!/usr/bin/env python
"""Rebuild the persisted documentation index for a crate.

Usage:
    python scripts/reindex.py --crate serde               # Rebuild deduplicated corpus
    python scripts/reindex.py --crate serde --all         # Rebuild with every page
    python scripts/reindex.py --crate serde --docs-path target/doc
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cratedocs import config
from cratedocs.llm_client import OpenAIClient
from cratedocs.rag.index_store import IndexStore, IndexStoreError
import structlog

logger = structlog.get_logger()


def print_report(store: IndexStore, elapsed_seconds: float) -> None:
    stats = store.stats
    index_stats = store.vector_store.get_stats()
    print(f"\n{'=' * 60}")
    print(f"  Indexing Complete: {store.crate_name}")
    print(f"{'=' * 60}\n")
    print(f"  📁 Files selected:       {stats['files_selected']}")
    print(f"  📄 Documents loaded:     {stats['documents_loaded']}")
    print(f"  📝 Nodes created:        {stats['nodes_created']}")
    print(f"  🧮 Embeddings generated: {stats['embeddings_generated']}")
    print(f"  📐 Dimension:            {index_stats['dimension']}")
    print(f"  🔢 Embedding tokens:     {stats['embedding_tokens']}")
    print(f"  💰 Estimated cost:       ${stats['estimated_cost_usd']:.6f}")
    print(f"  ⏱️  Time elapsed:         {elapsed_seconds:.1f}s")
    print(f"\n✅ Index ready at: {store.storage_dir}\n")


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Rebuild the documentation index for a crate",
    )
    parser.add_argument("--crate", default=config.CRATE_NAME, help="Crate to index (env: CRATE_NAME)")
    parser.add_argument(
        "--docs-path",
        default=config.DOCS_PATH,
        help="Documentation root holding one directory per crate (env: DOCS_PATH)",
    )
    parser.add_argument(
        "--all",
        dest="include_all",
        action="store_true",
        default=config.INCLUDE_ALL_DOCS,
        help="Index every documentation page instead of only deduplicated pages",
    )
    parser.add_argument(
        "--storage-dir",
        type=Path,
        default=None,
        help=f"Directory for persisted indexes (default: {config.STORAGE_DIR})",
    )

    args = parser.parse_args()

    try:
        config.check_required(args.docs_path, args.crate, config.OPENAI_API_KEY)
    except config.ConfigError as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)

    print("\n📋 Configuration:")
    print(f"   Crate:            {args.crate}")
    print(f"   Docs path:        {args.docs_path}")
    print(f"   Mode:             {'all pages' if args.include_all else 'deduplicated'}")
    print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
    print(f"   Chunk size:       {config.CHUNK_SIZE} chars")

    store = IndexStore(
        docs_path=Path(args.docs_path),
        crate_name=args.crate,
        provider=OpenAIClient(api_key=config.OPENAI_API_KEY),
        storage_root=args.storage_dir,
        include_all=args.include_all,
    )

    start_time = datetime.now()

    try:
        await store.initialize(force_rebuild=True)
    except KeyboardInterrupt:
        print("\n\n⚠️  Indexing cancelled by user.\n")
        sys.exit(1)
    except IndexStoreError as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("reindex_script_failed", error=str(e))
        sys.exit(1)

    print_report(store, (datetime.now() - start_time).total_seconds())


if __name__ == "__main__":
    asyncio.run(main())

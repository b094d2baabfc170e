"""Index store: load the persisted crate index or rebuild it.

Orchestrates:
- Artifact check for the crate's storage directory
- Load without any extraction or embedding calls
- Rebuild: corpus selection, document loading, chunking, embedding, persistence
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
import structlog

from cratedocs import config
from cratedocs.llm_client import OpenAIClient, embedding_vectors, usage_tokens
from cratedocs.rag.chunker import TextChunker
from cratedocs.rag.corpus import crate_docs_dir, select_crate_files
from cratedocs.rag.loader import DocumentLoader, DocumentReader
from cratedocs.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()


class IndexStoreError(RuntimeError):
    """Fatal failure while checking, loading or rebuilding the index."""


class IndexStore:
    """Produces a ready-to-query index for one crate."""

    def __init__(
        self,
        docs_path: Path,
        crate_name: str,
        provider: OpenAIClient,
        storage_root: Path = None,
        include_all: bool = False,
        embedding_model: str = None,
        chunker: Optional[TextChunker] = None,
        reader: Optional[DocumentReader] = None,
        batch_size: int = None,
    ):
        """Initialize the index store.

        Args:
            docs_path: Documentation root with one directory per crate
            crate_name: Crate whose docs are indexed
            provider: Embedding provider used during a rebuild
            storage_root: Parent of the per-crate storage directory (default from config)
            include_all: Index every candidate file instead of deduplicating
            embedding_model: Embedding model name (default from config)
            chunker: Text chunker (default: TextChunker with config sizes)
            reader: HTML extraction capability handed to the DocumentLoader
            batch_size: Texts per embeddings request (default from config)
        """
        self.docs_path = Path(docs_path)
        self.crate_name = crate_name
        self.provider = provider
        self.include_all = include_all
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.chunker = chunker or TextChunker()
        self.reader = reader
        self.batch_size = max(1, batch_size or config.EMBEDDING_BATCH_SIZE)

        self.storage_dir = config.storage_dir_for(crate_name, storage_root)
        self.vector_store = FAISSVectorStore(
            index_dir=self.storage_dir,
            crate_name=crate_name,
            embedding_model=self.embedding_model,
        )

        self.last_action: Optional[str] = None
        self.stats: Dict[str, Any] = {}
        self.embedding_tokens = 0

    async def initialize(self, force_rebuild: bool = False) -> FAISSVectorStore:
        """Load the persisted index when complete, otherwise rebuild it.

        Args:
            force_rebuild: Skip the artifact check and always rebuild

        Returns:
            The ready vector store

        Raises:
            IndexStoreError: On any failure; no partial index is returned
        """
        try:
            if not force_rebuild and self.vector_store.artifacts_exist():
                logger.info("existing_index_detected", crate=self.crate_name, path=str(self.storage_dir))
                self.vector_store.load()
                self.last_action = "load"
            else:
                logger.info(
                    "index_rebuild_required",
                    crate=self.crate_name,
                    forced=force_rebuild,
                    path=str(self.storage_dir),
                )
                await self.rebuild()
                self.last_action = "rebuild"
        except Exception as e:
            logger.error(
                "index_initialization_failed",
                crate=self.crate_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IndexStoreError(
                f"Failed to initialize documentation index for '{self.crate_name}': {e}"
            ) from e

        logger.info(
            "index_ready",
            crate=self.crate_name,
            action=self.last_action,
            vector_count=self.vector_store.vector_count,
        )
        return self.vector_store

    async def rebuild(self) -> None:
        """Rebuild the index from the documentation tree and persist it."""
        self.vector_store.clear_storage()

        files = select_crate_files(self.docs_path, self.crate_name, self.include_all)

        loader = DocumentLoader(crate_docs_dir(self.docs_path, self.crate_name), reader=self.reader)
        documents = await loader.load(files)

        nodes = self.chunker.split_documents(documents)
        if not nodes:
            logger.warning("empty_corpus", crate=self.crate_name, files=len(files))

        embeddings = await self.generate_embeddings([node.text for node in nodes])

        dimension = len(embeddings[0]) if embeddings else await self.get_embedding_dimension()
        self.vector_store.init_new_index(dimension, include_all=self.include_all)
        self.vector_store.add_nodes(nodes, embeddings)
        self.vector_store.save()

        self.stats = {
            "files_selected": len(files),
            "documents_loaded": len(documents),
            "nodes_created": len(nodes),
            "embeddings_generated": len(embeddings),
            "embedding_tokens": self.embedding_tokens,
            "estimated_cost_usd": (
                self.embedding_tokens / 1_000_000 * config.EMBEDDING_COST_PER_MILLION_TOKENS
            ),
        }

        logger.info("index_rebuilt", crate=self.crate_name, **self.stats)

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in batches, preserving order.

        Token usage reported by the provider is summed into ``embedding_tokens``.

        Raises:
            httpx.HTTPError: On provider errors
            RuntimeError: On malformed provider responses
        """
        embeddings: List[List[float]] = []
        self.embedding_tokens = 0

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            response = await self.provider.embeddings(batch, model=self.embedding_model)
            embeddings.extend(embedding_vectors(response, len(batch)))
            self.embedding_tokens += usage_tokens(response)

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
                tokens_so_far=self.embedding_tokens,
            )

        return embeddings

    async def get_embedding_dimension(self) -> int:
        """Detect embedding dimension by embedding a probe string."""
        response = await self.provider.embeddings(["dimension probe"], model=self.embedding_model)
        dimension = len(embedding_vectors(response, 1)[0])
        logger.info("embedding_dimension_detected", dimension=dimension)
        return dimension

"""FAISS vector store for semantic search over documentation nodes.

Handles:
- FAISS index initialization
- Vector addition and search
- Persistence of the three index artifacts (vectors, doc store, index store)
- Consistency validation on load
"""
import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple, Optional, Dict, Any
import numpy as np
import faiss
import structlog

from cratedocs import config
from cratedocs.rag.chunker import Node
from cratedocs.rag.html_parser import DocumentMetadata

logger = structlog.get_logger()


class IndexConsistencyError(ValueError):
    """Raised when persisted artifacts don't describe the same index."""


def _node_to_dict(node: Node) -> Dict[str, Any]:
    return {
        "node_id": node.node_id,
        "doc_id": node.doc_id,
        "text": node.text,
        "char_start": node.char_start,
        "char_end": node.char_end,
        "chunk_index": node.chunk_index,
        "metadata": node.metadata.model_dump(),
    }


def _node_from_dict(data: Dict[str, Any]) -> Node:
    return Node(
        node_id=data["node_id"],
        doc_id=data["doc_id"],
        text=data["text"],
        char_start=data["char_start"],
        char_end=data["char_end"],
        chunk_index=data["chunk_index"],
        metadata=DocumentMetadata.model_validate(data["metadata"]),
    )


def _write_atomic(path: Path, write) -> None:
    """Write through a sibling temp file and rename it into place."""
    tmp_path = path.with_name(path.name + ".tmp")
    write(tmp_path)
    os.replace(tmp_path, path)


class FAISSVectorStore:
    """FAISS-based vector store holding nodes and their embeddings."""

    def __init__(self, index_dir: Path, crate_name: str, embedding_model: str = None):
        """Initialize the FAISS vector store.

        Args:
            index_dir: Directory holding this crate's persisted artifacts
            crate_name: Crate the index belongs to
            embedding_model: Embedding model name (default from config)
        """
        self.index_dir = Path(index_dir)
        self.crate_name = crate_name
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL

        self.vector_path = self.index_dir / config.VECTOR_STORE_FILE
        self.doc_store_path = self.index_dir / config.DOC_STORE_FILE
        self.index_store_path = self.index_dir / config.INDEX_STORE_FILE

        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None
        self.nodes: List[Node] = []
        self.metadata: Dict[str, Any] = {}

    @property
    def artifact_paths(self) -> List[Path]:
        return [self.vector_path, self.doc_store_path, self.index_store_path]

    def artifacts_exist(self) -> bool:
        """Check whether all three persisted artifacts are present."""
        return all(path.is_file() for path in self.artifact_paths)

    @property
    def vector_count(self) -> int:
        return self.index.ntotal if self.index is not None else 0

    def init_new_index(self, dimension: int, include_all: bool = False) -> None:
        """Initialize a new, empty FAISS index.

        Args:
            dimension: Embedding dimension
            include_all: Selection mode the corpus was built with (informational)
        """
        self.dimension = dimension

        # Use IndexFlatL2 (exact search, simple, works for <100k vectors)
        self.index = faiss.IndexFlatL2(self.dimension)
        self.nodes = []

        self.metadata = {
            "build_id": uuid.uuid4().hex,
            "crate_name": self.crate_name,
            "embedding_model": self.embedding_model,
            "embedding_dimension": self.dimension,
            "index_type": "IndexFlatL2",
            "include_all": include_all,
            "vector_count": 0,
        }

        logger.info(
            "faiss_index_initialized",
            dimension=self.dimension,
            index_type="IndexFlatL2",
        )

    def add_nodes(self, nodes: List[Node], embeddings: List[List[float]]) -> None:
        """Add nodes with their embeddings, keeping both in the same order.

        Raises:
            RuntimeError: If no index initialized
            ValueError: If counts or dimensions don't match
        """
        if self.index is None:
            raise RuntimeError("No index initialized. Call init_new_index() first.")

        if len(nodes) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(nodes)} nodes"
            )

        if not nodes:
            return

        vectors = np.array(embeddings, dtype=np.float32)

        if vectors.ndim != 2 or vectors.shape[1] != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {vectors.shape[-1]}"
            )

        self.index.add(vectors)
        self.nodes.extend(nodes)

        logger.debug(
            "vectors_added",
            count=len(nodes),
            total_vectors=self.index.ntotal,
        )

    def search(
        self, query_embedding: List[float], top_k: int = None
    ) -> List[Tuple[Node, float]]:
        """Search for the nodes closest to a query vector.

        Returns:
            (node, L2 distance) pairs, closest first

        Raises:
            RuntimeError: If no index initialized
            ValueError: If the query dimension doesn't match
        """
        if self.index is None:
            raise RuntimeError("No index initialized. Call load() first.")

        if top_k is None:
            top_k = config.RETRIEVAL_TOP_K

        query_vector = np.array([query_embedding], dtype=np.float32)

        if query_vector.shape[1] != self.dimension:
            raise ValueError(
                f"Query dimension mismatch: expected {self.dimension}, "
                f"got {query_vector.shape[1]}"
            )

        top_k = min(top_k, self.index.ntotal)

        if top_k <= 0:
            return []

        distances, indices = self.index.search(query_vector, top_k)

        return [
            (self.nodes[idx], float(dist))
            for idx, dist in zip(indices[0].tolist(), distances[0].tolist())
            if idx >= 0
        ]

    def clear_storage(self) -> None:
        """Delete every file in the storage directory, keeping the directory."""
        if self.index_dir.exists():
            for path in self.index_dir.iterdir():
                if path.is_file() or path.is_symlink():
                    path.unlink()
                    logger.info("deleted_stale_artifact", path=str(path))
        else:
            self.index_dir.mkdir(parents=True, exist_ok=True)

    def save(self) -> None:
        """Persist vectors, doc store and index store.

        The index store is written last; a crash before it leaves an
        incomplete artifact set, which is rebuilt on the next start.

        Raises:
            RuntimeError: If no index to save
        """
        if self.index is None:
            raise RuntimeError("No index to save. Initialize or load an index first.")

        self.index_dir.mkdir(parents=True, exist_ok=True)

        self.metadata["vector_count"] = self.index.ntotal
        self.metadata["node_ids"] = [node.node_id for node in self.nodes]
        self.metadata["created_at"] = datetime.now(timezone.utc).isoformat()

        doc_store = {
            "build_id": self.metadata["build_id"],
            "crate_name": self.crate_name,
            "documents": self._document_entries(),
            "nodes": [_node_to_dict(node) for node in self.nodes],
        }

        _write_atomic(self.vector_path, lambda p: faiss.write_index(self.index, str(p)))
        _write_atomic(
            self.doc_store_path,
            lambda p: p.write_text(json.dumps(doc_store), encoding="utf-8"),
        )
        _write_atomic(
            self.index_store_path,
            lambda p: p.write_text(json.dumps(self.metadata, indent=2), encoding="utf-8"),
        )

        logger.info(
            "faiss_index_saved",
            index_dir=str(self.index_dir),
            vector_count=self.index.ntotal,
        )

    def _document_entries(self) -> List[Dict[str, Any]]:
        entries: Dict[str, Dict[str, Any]] = {}
        for node in self.nodes:
            entry = entries.setdefault(
                node.doc_id,
                {"doc_id": node.doc_id, "metadata": node.metadata.model_dump(), "node_ids": []},
            )
            entry["node_ids"].append(node.node_id)
        return list(entries.values())

    def load(self) -> None:
        """Load the persisted artifacts and check they belong together.

        Raises:
            FileNotFoundError: If an artifact is missing
            IndexConsistencyError: If the artifacts disagree with each other
                or with the configured crate and embedding model
        """
        for path in self.artifact_paths:
            if not path.is_file():
                raise FileNotFoundError(f"Index artifact not found: {path}")

        metadata = json.loads(self.index_store_path.read_text(encoding="utf-8"))
        doc_store = json.loads(self.doc_store_path.read_text(encoding="utf-8"))
        index = faiss.read_index(str(self.vector_path))

        nodes = [_node_from_dict(item) for item in doc_store.get("nodes", [])]

        problems = []
        if metadata.get("build_id") != doc_store.get("build_id"):
            problems.append("doc store and index store come from different builds")
        if metadata.get("crate_name") != self.crate_name:
            problems.append(
                f"index was built for crate '{metadata.get('crate_name')}'"
            )
        if metadata.get("embedding_model") != self.embedding_model:
            problems.append(
                f"index was built with embedding model '{metadata.get('embedding_model')}', "
                f"configured model is '{self.embedding_model}'"
            )
        if metadata.get("embedding_dimension") != index.d:
            problems.append(
                f"vector dimension {index.d} != recorded {metadata.get('embedding_dimension')}"
            )
        if not (metadata.get("vector_count") == index.ntotal == len(nodes)):
            problems.append(
                f"vector count {index.ntotal}, node count {len(nodes)}, "
                f"recorded {metadata.get('vector_count')}"
            )
        if metadata.get("node_ids") != [node.node_id for node in nodes]:
            problems.append("node ids differ between doc store and index store")

        if problems:
            raise IndexConsistencyError(
                f"Persisted index in {self.index_dir} is inconsistent: "
                + "; ".join(problems)
                + ". Delete the directory to rebuild it."
            )

        self.index = index
        self.dimension = index.d
        self.nodes = nodes
        self.metadata = metadata

        logger.info(
            "faiss_index_loaded",
            dimension=self.dimension,
            vector_count=self.index.ntotal,
            model=metadata.get("embedding_model"),
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        if self.index is None:
            return {
                "initialized": False,
                "vector_count": 0,
                "dimension": None,
            }

        return {
            "initialized": True,
            "crate_name": self.crate_name,
            "vector_count": self.index.ntotal,
            "document_count": len({node.doc_id for node in self.nodes}),
            "dimension": self.dimension,
            "embedding_model": self.embedding_model,
            "artifacts_on_disk": self.artifacts_exist(),
        }

"""Retriever and answer synthesis over the crate index.

Handles:
- Query embedding generation
- FAISS vector search
- Context formatting
- Grounded answer generation with the chat model
"""
import math
from typing import List, Optional
from dataclasses import dataclass, field
import structlog

from cratedocs import config
from cratedocs.llm_client import OpenAIClient, embedding_vectors, message_content
from cratedocs.rag.chunker import Node
from cratedocs.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()

NO_CONTEXT_ANSWER = "No relevant documentation was found for this question."

SYSTEM_PROMPT = """You answer questions about the Rust crate '{crate}' using its official documentation.

Use only the documentation excerpts below. Quote item names (structs, traits, functions,
methods) exactly as they appear. If the excerpts don't contain the answer, say so
instead of guessing.

DOCUMENTATION:
{context}"""


class RetrievalError(RuntimeError):
    """Raised when retrieval or answer synthesis fails."""


@dataclass
class RetrievalResult:
    """A single retrieved node with its distance to the query."""

    node: Node
    distance: float

    @property
    def source(self) -> str:
        return self.node.doc_id

    @property
    def relevance_score(self) -> float:
        """Map L2 distance to a 0-1 score, lower distance scoring higher."""
        return math.exp(-self.distance / 2.0)


@dataclass
class QueryResponse:
    """Answer text plus the passages it was grounded on."""

    answer: str
    sources: List[RetrievalResult] = field(default_factory=list)


class Retriever:
    """Semantic retriever and answer synthesizer for one crate."""

    def __init__(
        self,
        vector_store: FAISSVectorStore,
        provider: OpenAIClient,
        crate_name: str,
        embedding_model: str = None,
        chat_model: str = None,
        top_k: int = None,
        max_context_chars: int = None,
    ):
        """Initialize the retriever.

        Args:
            vector_store: Ready (loaded or rebuilt) vector store
            provider: Embedding and chat provider
            crate_name: Crate the documentation belongs to
            embedding_model: Embedding model name (default from config)
            chat_model: Chat model name (default from config)
            top_k: Number of passages to retrieve (default from config)
            max_context_chars: Context budget for the prompt (default from config)
        """
        self.vector_store = vector_store
        self.provider = provider
        self.crate_name = crate_name
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.chat_model = chat_model or config.CHAT_MODEL
        self.top_k = top_k or config.RETRIEVAL_TOP_K
        self.max_context_chars = max_context_chars or config.MAX_CONTEXT_CHARS

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Retrieve the passages closest to a query.

        Returns:
            RetrievalResult objects, best first

        Raises:
            RetrievalError: If embedding or search fails
        """
        if not query or not query.strip():
            logger.warning("empty_query_provided")
            return []

        top_k = top_k or self.top_k

        if self.vector_store.vector_count == 0:
            logger.warning("empty_index_no_results")
            return []

        try:
            response = await self.provider.embeddings([query], model=self.embedding_model)
            query_embedding = embedding_vectors(response, 1)[0]
            hits = self.vector_store.search(query_embedding, top_k=top_k)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise RetrievalError(f"Retrieval failed: {e}") from e

        results = [RetrievalResult(node=node, distance=distance) for node, distance in hits]
        results.sort(key=lambda r: r.distance)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_distance=results[0].distance if results else None,
        )

        return results

    def build_context(self, results: List[RetrievalResult]) -> str:
        """Format retrieved passages for the prompt within the character budget."""
        context_parts = []
        total_chars = 0

        for i, result in enumerate(results, 1):
            chunk_text = f"[Source {i}: {result.source}]\n{result.node.text.strip()}\n"

            if total_chars + len(chunk_text) > self.max_context_chars:
                remaining = self.max_context_chars - total_chars
                if remaining > 200:
                    context_parts.append(chunk_text[:remaining] + "...\n")
                break

            context_parts.append(chunk_text)
            total_chars += len(chunk_text)

        return "\n".join(context_parts)

    async def query(self, question: str) -> QueryResponse:
        """Answer a question from the retrieved documentation.

        Raises:
            RetrievalError: If retrieval or the chat completion fails
        """
        results = await self.retrieve(question)

        if not results:
            logger.info("no_relevant_context_found")
            return QueryResponse(answer=NO_CONTEXT_ANSWER)

        context = self.build_context(results)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT.format(crate=self.crate_name, context=context)},
            {"role": "user", "content": question},
        ]

        try:
            response = await self.provider.chat(messages, model=self.chat_model, temperature=0.0)
        except Exception as e:
            logger.error("synthesis_failed", error=str(e), error_type=type(e).__name__)
            raise RetrievalError(f"Answer generation failed: {e}") from e

        answer = message_content(response).strip()
        if not answer:
            logger.error("empty_chat_response")
            raise RetrievalError("Empty response from chat model")

        logger.info(
            "query_answered",
            sources=[r.source for r in results],
            answer_length=len(answer),
        )

        return QueryResponse(answer=answer, sources=results)

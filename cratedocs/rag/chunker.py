"""Text chunking with overlap for the documentation index.

Implements character-based chunking to avoid tokenizer dependencies.
"""
from collections import Counter
from typing import List
from dataclasses import dataclass
import structlog

from cratedocs import config
from cratedocs.rag.html_parser import DocumentMetadata, TextDocument

logger = structlog.get_logger()


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


@dataclass
class Node:
    """A chunk of a document, the unit that gets embedded and retrieved."""

    node_id: str
    doc_id: str
    text: str
    char_start: int
    char_end: int
    chunk_index: int
    metadata: DocumentMetadata


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = chunk_size or config.CHUNK_SIZE
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects
        """
        if not text:
            return []

        text_length = len(text)

        if text_length <= self.chunk_size:
            return [TextChunk(content=text, char_start=0, char_end=text_length, chunk_index=0)]

        chunks = []
        chunk_index = 0
        start = 0

        while start < text_length:
            end = min(start + self.chunk_size, text_length)
            chunk_content = text[start:end]

            # Prefer a sentence or word boundary unless this is the tail
            if end < text_length:
                chunk_content = self._adjust_chunk_boundary(chunk_content)
                end = start + len(chunk_content)

            chunks.append(
                TextChunk(
                    content=chunk_content,
                    char_start=start,
                    char_end=end,
                    chunk_index=chunk_index,
                )
            )

            if end >= text_length:
                break

            start = end - self.chunk_overlap
            chunk_index += 1

            # Always make forward progress
            if start <= chunks[-1].char_start:
                start = chunks[-1].char_end

        return chunks

    def _adjust_chunk_boundary(self, chunk_content: str) -> str:
        """Cut the chunk at the last sentence, line or word break near its end."""
        for break_char in (". ", "! ", "? ", ".\n", "!\n", "?\n"):
            last_break = chunk_content.rfind(break_char)
            if last_break > len(chunk_content) * 0.7:
                return chunk_content[: last_break + len(break_char)]

        last_paragraph = chunk_content.rfind("\n\n")
        if last_paragraph > len(chunk_content) * 0.7:
            return chunk_content[: last_paragraph + 2]

        last_newline = chunk_content.rfind("\n")
        if last_newline > len(chunk_content) * 0.7:
            return chunk_content[: last_newline + 1]

        last_space = chunk_content.rfind(" ")
        if last_space > len(chunk_content) * 0.8:
            return chunk_content[: last_space + 1]

        return chunk_content

    def split_documents(self, documents: List[TextDocument]) -> List[Node]:
        """Chunk every document into nodes.

        Node ids are ``<doc_id>#<n>``, ``n`` counting chunks per doc_id so
        documents that share an id still get distinct node ids.
        """
        seen: Counter = Counter()
        nodes: List[Node] = []

        for doc in documents:
            for chunk in self.chunk_text(doc.text):
                nodes.append(
                    Node(
                        node_id=f"{doc.doc_id}#{seen[doc.doc_id]}",
                        doc_id=doc.doc_id,
                        text=chunk.content,
                        char_start=chunk.char_start,
                        char_end=chunk.char_end,
                        chunk_index=chunk.chunk_index,
                        metadata=doc.metadata,
                    )
                )
                seen[doc.doc_id] += 1

        logger.info(
            "documents_chunked",
            documents=len(documents),
            nodes=len(nodes),
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

        return nodes

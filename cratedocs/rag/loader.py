"""Document loader for selected crate documentation files.

Orchestrates:
- Concurrent HTML extraction (bounded task group, fail fast)
- Stable document identifiers (path relative to the crate directory)
"""
import asyncio
import dataclasses
from pathlib import Path
from typing import List, Optional, Protocol
import structlog

from cratedocs import config
from cratedocs.rag.html_parser import HtmlDocumentReader, TextDocument

logger = structlog.get_logger()


class DocumentReader(Protocol):
    def load_data(self, file_path: Path) -> List[TextDocument]: ...


class DocumentLoadError(RuntimeError):
    """Raised when any selected file fails to load."""

    def __init__(self, rel_path: str, cause: BaseException):
        super().__init__(f"Failed to load documentation file '{rel_path}': {cause}")
        self.rel_path = rel_path
        self.cause = cause


class DocumentLoader:
    """Loads selected documentation files into text documents."""

    def __init__(
        self,
        crate_dir: Path,
        reader: Optional[DocumentReader] = None,
        concurrency: int = None,
    ):
        """Initialize the loader.

        Args:
            crate_dir: Directory the selected relative paths are resolved against
            reader: Extraction capability (default: HtmlDocumentReader)
            concurrency: Maximum files extracted at once (default from config)
        """
        self.crate_dir = Path(crate_dir)
        self.reader = reader or HtmlDocumentReader()
        self.concurrency = max(1, concurrency or config.LOAD_CONCURRENCY)

    async def load_file(self, rel_path: str) -> List[TextDocument]:
        """Extract one file and stamp its documents with the relative path."""
        full_path = self.crate_dir / rel_path

        try:
            docs = await asyncio.to_thread(self.reader.load_data, full_path)
        except Exception as e:
            logger.error("document_load_failed", path=rel_path, error=str(e))
            raise DocumentLoadError(rel_path, e) from e

        logger.debug("document_loaded", path=rel_path, documents=len(docs))

        return [
            dataclasses.replace(
                doc,
                doc_id=rel_path,
                metadata=doc.metadata.model_copy(update={"file_path": rel_path}),
            )
            for doc in docs
        ]

    async def load(self, rel_paths: List[str]) -> List[TextDocument]:
        """Load every selected file.

        Args:
            rel_paths: Paths relative to the crate directory

        Returns:
            All documents, in no particular cross-file order

        Raises:
            DocumentLoadError: On the first file that fails; no partial result
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(rel_path: str) -> List[TextDocument]:
            async with semaphore:
                return await self.load_file(rel_path)

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(bounded(p)) for p in rel_paths]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]

        documents = [doc for task in tasks for doc in task.result()]

        logger.info(
            "documents_loaded",
            files=len(rel_paths),
            documents=len(documents),
        )

        return documents

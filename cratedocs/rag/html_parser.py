"""HTML parser for extracting text from generated rustdoc pages.

Handles:
- Main content selection (rustdoc's ``section#main-content``)
- Script/style stripping
- Typed document metadata
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger()


class DocumentMetadata(BaseModel):
    """Closed set of metadata carried by every text document.

    Unknown keys are dropped at validation time.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    file_path: str
    file_name: str
    title: Optional[str] = None
    file_size: int = 0


@dataclass
class TextDocument:
    """Text extracted from one documentation file."""

    doc_id: str
    text: str
    metadata: DocumentMetadata


class HtmlDocumentReader:
    """Reader turning a rustdoc HTML file into zero or more text documents."""

    CONTENT_SELECTOR = "section#main-content"
    STRIP_TAGS = ("script", "style", "noscript")

    def load_data(self, file_path: Path) -> List[TextDocument]:
        """Extract the documentation text of an HTML file.

        Args:
            file_path: Path to the HTML file

        Returns:
            A single-element list, or an empty list when the page has no text

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        if not file_path.exists():
            raise FileNotFoundError(f"HTML file not found: {file_path}")

        html = file_path.read_text(encoding="utf-8", errors="replace")
        soup = BeautifulSoup(html, "html.parser")

        for tag in soup(list(self.STRIP_TAGS)):
            tag.decompose()

        root = soup.select_one(self.CONTENT_SELECTOR)
        if root is None:
            root = soup.body if soup.body is not None else soup
        text = "\n".join(root.stripped_strings)

        if not text:
            logger.debug("html_no_text_content", path=str(file_path))
            return []

        title = soup.title.get_text(strip=True) if soup.title else None

        raw_metadata: Dict[str, Any] = {
            "file_path": str(file_path),
            "file_name": file_path.name,
            "title": title or None,
            "file_size": file_path.stat().st_size,
        }

        logger.debug(
            "html_parsed",
            path=str(file_path),
            used_main_content=root.name == "section",
            content_length=len(text),
        )

        return [
            TextDocument(
                doc_id=str(file_path),
                text=text,
                metadata=DocumentMetadata.model_validate(raw_metadata),
            )
        ]

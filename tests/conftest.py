"""Pytest configuration and fixtures."""
import hashlib
import math
import re
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from cratedocs.rag.chunker import TextChunker
from cratedocs.rag.index_store import IndexStore


CRATE = "mylib"
EMBEDDING_DIM = 64

PAGE_TEMPLATE = (
    "<html><head><title>{title}</title></head><body><nav>{pad}</nav>"
    '<section id="main-content" class="content"><p>{text}</p></section></body></html>'
)


def write_page(path: Path, text: str, size: int, title: str = "mylib") -> Path:
    """Write a rustdoc-like page of exactly ``size`` bytes."""
    base = PAGE_TEMPLATE.format(title=title, pad="", text=text)
    assert len(base) <= size, f"page body too long for {size} bytes"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PAGE_TEMPLATE.format(title=title, pad="x" * (size - len(base)), text=text))
    return path


def fake_embedding(text: str) -> List[float]:
    """Deterministic bag-of-words embedding."""
    vector = [0.0] * EMBEDDING_DIM
    for word in re.findall(r"[a-z]+", text.lower()):
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % EMBEDDING_DIM
        vector[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vector)) or 1.0
    return [v / norm for v in vector]


class FakeProvider:
    """Stands in for OpenAIClient, recording every call."""

    def __init__(self, fail_chat: bool = False, fail_embeddings: bool = False):
        self.fail_chat = fail_chat
        self.fail_embeddings = fail_embeddings
        self.embedding_calls: List[List[str]] = []
        self.chat_calls: List[List[Dict[str, str]]] = []

    async def embeddings(self, texts: List[str], model: Optional[str] = None) -> Dict:
        self.embedding_calls.append(list(texts))
        if self.fail_embeddings:
            raise RuntimeError("embedding service unavailable")
        tokens = sum(len(text.split()) for text in texts)
        return {
            "data": [
                {"index": i, "embedding": fake_embedding(text)}
                for i, text in enumerate(texts)
            ],
            "usage": {"prompt_tokens": tokens, "total_tokens": tokens},
        }

    async def chat(self, messages, model=None, temperature=None) -> Dict:
        self.chat_calls.append(messages)
        if self.fail_chat:
            raise RuntimeError("chat service unavailable")
        source_line = next(
            line for line in messages[0]["content"].splitlines() if line.startswith("[Source 1:")
        )
        return {"choices": [{"message": {"role": "assistant", "content": f"See {source_line}"}}]}


class CountingReader:
    """Wraps a document reader and counts the files it was asked to read."""

    def __init__(self, inner):
        self.inner = inner
        self.calls: List[Path] = []

    def load_data(self, file_path: Path):
        self.calls.append(file_path)
        return self.inner.load_data(file_path)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    """Documentation root with two duplicate pairs, one unique page and a landing page."""
    root = tmp_path / "docs"
    crate_dir = root / CRATE
    write_page(crate_dir / "foo.html", "Foo re-export.", 500)
    write_page(
        crate_dir / "sub" / "foo.html",
        "The Foo struct configures routing for the server. Call Foo::route to add a path handler.",
        900,
        title="Foo in mylib::sub",
    )
    write_page(crate_dir / "bar.html", "Bar helper.", 300)
    write_page(crate_dir / "baz.html", "Baz re-export.", 400)
    write_page(
        crate_dir / "other" / "baz.html",
        "The Baz trait serializes values into bytes. Implement Baz::encode for custom types.",
        700,
        title="Baz in mylib::other",
    )
    write_page(crate_dir / "index.html", "Landing page for mylib.", 400)
    return root


@pytest.fixture
def make_index_store(docs_root: Path, tmp_path: Path, provider: FakeProvider):
    """Factory for index stores sharing one storage directory."""

    def factory(**overrides) -> IndexStore:
        kwargs = dict(
            docs_path=docs_root,
            crate_name=CRATE,
            provider=provider,
            storage_root=tmp_path / "storage",
            embedding_model="fake-embed",
            chunker=TextChunker(chunk_size=400, chunk_overlap=40),
        )
        kwargs.update(overrides)
        return IndexStore(**kwargs)

    return factory

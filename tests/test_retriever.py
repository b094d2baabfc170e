"""Tests for retrieval and answer synthesis."""
import pytest
import pytest_asyncio

from cratedocs.rag.chunker import Node
from cratedocs.rag.html_parser import DocumentMetadata
from cratedocs.rag.retriever import (
    NO_CONTEXT_ANSWER,
    RetrievalError,
    RetrievalResult,
    Retriever,
)
from conftest import CRATE, FakeProvider


@pytest_asyncio.fixture
async def vector_store(make_index_store):
    return await make_index_store().initialize()


def make_retriever(vector_store, provider, **kwargs) -> Retriever:
    return Retriever(vector_store, provider, CRATE, embedding_model="fake-embed", **kwargs)


def make_result(doc_id: str, text: str, distance: float = 0.5) -> RetrievalResult:
    node = Node(
        node_id=f"{doc_id}#0",
        doc_id=doc_id,
        text=text,
        char_start=0,
        char_end=len(text),
        chunk_index=0,
        metadata=DocumentMetadata(file_path=doc_id, file_name=doc_id),
    )
    return RetrievalResult(node=node, distance=distance)


@pytest.mark.asyncio
async def test_query_answers_from_best_passage(vector_store):
    provider = FakeProvider()
    retriever = make_retriever(vector_store, provider)

    response = await retriever.query("How do I add a routing path handler with Foo?")

    assert response.answer == "See [Source 1: sub/foo.html]"
    assert response.sources[0].source == "sub/foo.html"
    assert len(provider.chat_calls) == 1
    system, user = provider.chat_calls[0]
    assert CRATE in system["content"]
    assert "configures routing" in system["content"]
    assert user == {"role": "user", "content": "How do I add a routing path handler with Foo?"}


@pytest.mark.asyncio
async def test_results_are_sorted_and_limited(vector_store):
    retriever = make_retriever(vector_store, FakeProvider(), top_k=1)

    results = await retriever.retrieve("Baz trait")

    assert len(results) == 1
    assert 0.0 < results[0].relevance_score <= 1.0


@pytest.mark.asyncio
async def test_blank_question_retrieves_nothing(vector_store):
    provider = FakeProvider()

    assert await make_retriever(vector_store, provider).retrieve("   ") == []
    assert provider.embedding_calls == []


@pytest.mark.asyncio
async def test_empty_index_answers_without_chat(make_index_store, tmp_path):
    docs = tmp_path / "sparse-docs"
    (docs / CRATE).mkdir(parents=True)
    vector_store = await make_index_store(docs_path=docs).initialize()
    provider = FakeProvider()

    response = await make_retriever(vector_store, provider).query("Anything?")

    assert response.answer == NO_CONTEXT_ANSWER
    assert response.sources == []
    assert provider.chat_calls == []


@pytest.mark.asyncio
async def test_chat_failure_raises_retrieval_error(vector_store):
    retriever = make_retriever(vector_store, FakeProvider(fail_chat=True))

    with pytest.raises(RetrievalError):
        await retriever.query("How does Foo route?")


@pytest.mark.asyncio
async def test_embedding_failure_raises_retrieval_error(vector_store):
    retriever = make_retriever(vector_store, FakeProvider(fail_embeddings=True))

    with pytest.raises(RetrievalError):
        await retriever.retrieve("How does Foo route?")


def test_context_respects_character_budget():
    retriever = make_retriever(None, FakeProvider(), max_context_chars=300)
    results = [make_result("a.html", "A" * 150), make_result("b.html", "B" * 400)]

    context = retriever.build_context(results)

    assert context.startswith("[Source 1: a.html]")
    assert "[Source 2: b.html]" not in context
    assert len(context) <= 300 + len("...\n")

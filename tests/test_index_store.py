"""Tests for loading, rebuilding and persisting the crate index."""
import json

import pytest

from cratedocs import config
from cratedocs.rag.html_parser import HtmlDocumentReader
from cratedocs.rag.index_store import IndexStoreError
from cratedocs.rag.loader import DocumentLoadError
from cratedocs.rag.retriever import Retriever
from cratedocs.rag.store_faiss import IndexConsistencyError
from conftest import CRATE, CountingReader, FakeProvider

ARTIFACTS = {config.VECTOR_STORE_FILE, config.DOC_STORE_FILE, config.INDEX_STORE_FILE}


@pytest.mark.asyncio
async def test_first_start_rebuilds_and_persists(make_index_store):
    store = make_index_store()

    vector_store = await store.initialize()

    assert store.last_action == "rebuild"
    assert {p.name for p in store.storage_dir.iterdir()} == ARTIFACTS
    assert store.storage_dir.name == CRATE
    assert sorted({n.doc_id for n in vector_store.nodes}) == ["other/baz.html", "sub/foo.html"]
    assert vector_store.vector_count == len(vector_store.nodes)
    assert store.stats["files_selected"] == 2


@pytest.mark.asyncio
async def test_second_start_loads_without_extraction_or_embedding(make_index_store, provider):
    await make_index_store().initialize()

    reader = CountingReader(HtmlDocumentReader())
    fresh_provider = FakeProvider()
    store = make_index_store(reader=reader, provider=fresh_provider)
    vector_store = await store.initialize()

    assert store.last_action == "load"
    assert reader.calls == []
    assert fresh_provider.embedding_calls == []
    assert vector_store.vector_count > 0


@pytest.mark.asyncio
async def test_reloaded_index_retrieves_the_same_passage(make_index_store, provider):
    built = await make_index_store().initialize()
    loaded = await make_index_store().initialize()
    question = "How does the Baz trait serialize values?"

    before = await Retriever(built, provider, CRATE, embedding_model="fake-embed").retrieve(question)
    after = await Retriever(loaded, provider, CRATE, embedding_model="fake-embed").retrieve(question)

    assert before[0].node.doc_id == "other/baz.html"
    assert [r.node.node_id for r in after] == [r.node.node_id for r in before]
    assert [r.distance for r in after] == pytest.approx([r.distance for r in before])


@pytest.mark.asyncio
async def test_incomplete_artifacts_trigger_rebuild_and_clear_stale_files(make_index_store):
    first = make_index_store()
    await first.initialize()
    (first.storage_dir / config.INDEX_STORE_FILE).unlink()
    (first.storage_dir / "leftover.tmp").write_text("stale")

    store = make_index_store()
    await store.initialize()

    assert store.last_action == "rebuild"
    assert {p.name for p in store.storage_dir.iterdir()} == ARTIFACTS


@pytest.mark.asyncio
async def test_artifacts_from_different_builds_are_rejected(make_index_store):
    store = make_index_store()
    await store.initialize()
    doc_store_path = store.storage_dir / config.DOC_STORE_FILE
    doc_store = json.loads(doc_store_path.read_text())
    doc_store["build_id"] = "someone-else"
    doc_store_path.write_text(json.dumps(doc_store))

    with pytest.raises(IndexStoreError) as exc_info:
        await make_index_store().initialize()

    assert isinstance(exc_info.value.__cause__, IndexConsistencyError)


@pytest.mark.asyncio
async def test_node_count_mismatch_is_rejected(make_index_store):
    store = make_index_store()
    await store.initialize()
    doc_store_path = store.storage_dir / config.DOC_STORE_FILE
    doc_store = json.loads(doc_store_path.read_text())
    doc_store["nodes"] = doc_store["nodes"][:-1]
    doc_store_path.write_text(json.dumps(doc_store))

    with pytest.raises(IndexStoreError, match="inconsistent"):
        await make_index_store().initialize()


@pytest.mark.asyncio
async def test_changed_embedding_model_is_rejected(make_index_store):
    await make_index_store().initialize()

    with pytest.raises(IndexStoreError, match="embedding model"):
        await make_index_store(embedding_model="other-embed").initialize()


@pytest.mark.asyncio
async def test_force_rebuild_skips_load(make_index_store):
    await make_index_store().initialize()
    reader = CountingReader(HtmlDocumentReader())

    store = make_index_store(reader=reader)
    await store.initialize(force_rebuild=True)

    assert store.last_action == "rebuild"
    assert len(reader.calls) == 2


@pytest.mark.asyncio
async def test_include_all_indexes_every_candidate(make_index_store):
    store = make_index_store(include_all=True)

    vector_store = await store.initialize()

    assert sorted({n.doc_id for n in vector_store.nodes}) == [
        "bar.html",
        "baz.html",
        "foo.html",
        "other/baz.html",
        "sub/foo.html",
    ]
    assert vector_store.metadata["include_all"] is True


@pytest.mark.asyncio
async def test_empty_corpus_builds_an_empty_index(make_index_store, tmp_path):
    docs = tmp_path / "sparse-docs"
    (docs / CRATE).mkdir(parents=True)
    (docs / CRATE / "only.html").write_text("<html><body><p>Unique page.</p></body></html>")

    store = make_index_store(docs_path=docs)
    vector_store = await store.initialize()

    assert vector_store.vector_count == 0
    assert vector_store.dimension > 0
    assert store.vector_store.artifacts_exist()


@pytest.mark.asyncio
async def test_missing_docs_directory_is_fatal(make_index_store, tmp_path):
    with pytest.raises(IndexStoreError) as exc_info:
        await make_index_store(docs_path=tmp_path / "nowhere").initialize()

    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


@pytest.mark.asyncio
async def test_extraction_failure_is_fatal(make_index_store):
    class BrokenReader:
        def load_data(self, file_path):
            raise OSError("disk error")

    with pytest.raises(IndexStoreError) as exc_info:
        await make_index_store(reader=BrokenReader()).initialize()

    assert isinstance(exc_info.value.__cause__, DocumentLoadError)


@pytest.mark.asyncio
async def test_embedding_failure_is_fatal_and_leaves_no_index(make_index_store):
    store = make_index_store(provider=FakeProvider(fail_embeddings=True))

    with pytest.raises(IndexStoreError):
        await store.initialize()

    assert not store.vector_store.artifacts_exist()


@pytest.mark.asyncio
async def test_embeddings_are_requested_in_batches(make_index_store, provider):
    store = make_index_store(batch_size=1)

    vector_store = await store.initialize()

    assert len(provider.embedding_calls) == vector_store.vector_count
    assert all(len(batch) == 1 for batch in provider.embedding_calls)


@pytest.mark.asyncio
async def test_stats_describe_the_loaded_index(make_index_store):
    await make_index_store().initialize()
    vector_store = await make_index_store().initialize()

    stats = vector_store.get_stats()

    assert stats["initialized"] is True
    assert stats["crate_name"] == CRATE
    assert stats["document_count"] == 2
    assert stats["vector_count"] == vector_store.vector_count
    assert stats["artifacts_on_disk"] is True


@pytest.mark.asyncio
async def test_rebuild_reports_token_usage_and_cost(make_index_store, provider, monkeypatch):
    monkeypatch.setattr(config, "EMBEDDING_COST_PER_MILLION_TOKENS", 0.02)
    store = make_index_store(batch_size=1)

    await store.initialize()

    expected_tokens = sum(len(text.split()) for batch in provider.embedding_calls for text in batch)
    assert expected_tokens > 0
    assert store.stats["embedding_tokens"] == expected_tokens
    assert store.stats["estimated_cost_usd"] == pytest.approx(expected_tokens / 1_000_000 * 0.02)

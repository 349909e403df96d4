"""Tests for index/ops.py - the pipeline end to end with a deterministic backend."""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import numpy as np
import pytest

from docplane.config.models import DocPlaneConfig
from docplane.core.errors import (
    ErrorCode,
    ExtractionError,
    InvalidInput,
    ItemNotFound,
    ProjectNotFound,
    SchemaError,
)
from docplane.index.builder import format_embedding_text
from docplane.index.embedding import EmbeddingProvider
from docplane.index.extraction import JsonFileExtractor, RustdocExtractor
from docplane.index.models import ProjectIndex
from docplane.index.normalizer import normalize
from docplane.index.ops import DocIndexOps
from docplane.index.query import cosine_similarity
from docplane.index.store import IndexStore


class TreeExtractor:
    """Returns a fixed tree for any project directory."""

    def __init__(self, tree: dict[str, Any]) -> None:
        self.tree = tree
        self.calls: list[Path] = []

    def extract(self, project_dir: Path) -> dict[str, Any]:
        self.calls.append(project_dir)
        return self.tree


class RaisingExtractor:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def extract(self, project_dir: Path) -> dict[str, Any]:
        raise self.exc


class GatedBackend:
    """Blocks any batch containing ``marker`` until ``release`` is set."""

    def __init__(self, inner: Any, marker: str) -> None:
        self.inner = inner
        self.marker = marker
        self.entered = threading.Event()
        self.release = threading.Event()

    def embed(self, texts: list[str]) -> Any:
        if any(self.marker in t for t in texts):
            self.entered.set()
            self.release.wait(timeout=10)
        return self.inner.embed(texts)


@pytest.fixture
def hello_tree(tree_factory: Any) -> dict[str, Any]:
    return tree_factory("k", [{"id": "1", "name": "hello", "docs": "A test function"}])


@pytest.fixture
def ops(ready_provider: EmbeddingProvider, hello_tree: dict[str, Any]) -> DocIndexOps:
    return DocIndexOps(IndexStore(), ready_provider, TreeExtractor(hello_tree))


class TestIngest:
    @pytest.mark.asyncio
    async def test_summary(self, ops: DocIndexOps, tmp_path: Path) -> None:
        summary = await ops.ingest(str(tmp_path))

        assert summary.project_path == str(tmp_path)
        assert summary.crate_name == "k"
        assert summary.embedded_count == 1
        assert summary.total_projects == 1
        assert summary.embedding_error is None
        assert summary.message == (
            f"Successfully processed project {tmp_path} and embedded 1 items. "
            "Total processed projects: 1."
        )

    @pytest.mark.asyncio
    async def test_reingest_replaces(
        self, ready_provider: EmbeddingProvider, tree_factory: Any, tmp_path: Path
    ) -> None:
        extractor = TreeExtractor(tree_factory("k", [{"id": "1", "name": "old", "docs": "file"}]))
        ops = DocIndexOps(IndexStore(), ready_provider, extractor)
        await ops.ingest(str(tmp_path))

        extractor.tree = tree_factory("k", [{"id": "1", "name": "new", "docs": "file"}])
        summary = await ops.ingest(str(tmp_path))

        assert summary.total_projects == 1
        results = await ops.query("file", num_results=10)
        assert [r.item_full_path for r in results] == ["k::new"]

    @pytest.mark.asyncio
    async def test_missing_directory(self, ops: DocIndexOps, tmp_path: Path) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            await ops.ingest(str(tmp_path / "nope"))
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_file_is_not_a_directory(self, ops: DocIndexOps, tmp_path: Path) -> None:
        file_path = tmp_path / "Cargo.toml"
        file_path.write_text("")

        with pytest.raises(InvalidInput):
            await ops.ingest(str(file_path))

    @pytest.mark.asyncio
    async def test_empty_path(self, ops: DocIndexOps) -> None:
        with pytest.raises(InvalidInput):
            await ops.ingest("")

    @pytest.mark.asyncio
    async def test_extraction_error_propagates(
        self, ready_provider: EmbeddingProvider, tmp_path: Path
    ) -> None:
        err = ExtractionError.failed(str(tmp_path), "cargo exploded")
        ops = DocIndexOps(IndexStore(), ready_provider, RaisingExtractor(err))

        with pytest.raises(ExtractionError) as exc_info:
            await ops.ingest(str(tmp_path))

        assert exc_info.value is err
        assert await ops.list_projects() == []

    @pytest.mark.asyncio
    async def test_unexpected_extractor_error_wrapped(
        self, ready_provider: EmbeddingProvider, tmp_path: Path
    ) -> None:
        ops = DocIndexOps(IndexStore(), ready_provider, RaisingExtractor(OSError("disk full")))

        with pytest.raises(ExtractionError, match="disk full"):
            await ops.ingest(str(tmp_path))

    @pytest.mark.asyncio
    async def test_schema_error_leaves_store_untouched(
        self, ready_provider: EmbeddingProvider, tmp_path: Path
    ) -> None:
        ops = DocIndexOps(IndexStore(), ready_provider, TreeExtractor({"index": {}}))

        with pytest.raises(SchemaError):
            await ops.ingest(str(tmp_path))

        assert await ops.list_projects() == []

    @pytest.mark.asyncio
    async def test_json_path_bypasses_extractor(
        self, ops: DocIndexOps, tree_factory: Any, tmp_path: Path
    ) -> None:
        doc = tmp_path / "other.json"
        doc.write_text(json.dumps(tree_factory("other", [{"id": "1", "name": "x", "docs": "d"}])))

        summary = await ops.ingest(str(tmp_path), json_path=str(doc))

        assert summary.crate_name == "other"
        assert ops.extractor.calls == []  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_json_file_extractor_discovery(
        self, ready_provider: EmbeddingProvider, tree_factory: Any, tmp_path: Path
    ) -> None:
        (tmp_path / "Cargo.toml").write_text('[package]\nname = "my-crate"\n')
        doc_dir = tmp_path / "target" / "doc"
        doc_dir.mkdir(parents=True)
        (doc_dir / "my_crate.json").write_text(
            json.dumps(tree_factory("my_crate", [{"id": "1", "name": "f", "docs": "file"}]))
        )
        ops = DocIndexOps(IndexStore(), ready_provider, JsonFileExtractor())

        summary = await ops.ingest(str(tmp_path))

        assert summary.crate_name == "my_crate"
        assert summary.embedded_count == 1

    @pytest.mark.asyncio
    async def test_ingest_while_provider_loading(
        self, hello_tree: dict[str, Any], tmp_path: Path, loading_provider: EmbeddingProvider
    ) -> None:
        ops = DocIndexOps(IndexStore(), loading_provider, TreeExtractor(hello_tree))

        summary = await ops.ingest(str(tmp_path))

        assert summary.embedded_count == 0
        assert summary.embedding_error is not None
        assert await ops.list_projects() == [str(tmp_path)]

    @pytest.mark.asyncio
    async def test_skip_stripped_honored(
        self, ready_provider: EmbeddingProvider, tree_factory: Any
    ) -> None:
        tree = tree_factory("k", [{"id": "1", "name": "f", "docs": "file", "stripped": True}])
        ops = DocIndexOps(IndexStore(), ready_provider, TreeExtractor(tree), skip_stripped=True)

        summary = await ops.ingest_tree("p", tree)

        assert summary.embedded_count == 0

    @pytest.mark.asyncio
    async def test_cpu_work_stays_off_event_loop(
        self, ops: DocIndexOps, hello_tree: dict[str, Any]
    ) -> None:
        loop_thread = threading.get_ident()
        threads: dict[str, int] = {}
        from_catalog = ProjectIndex.from_catalog

        def recording_normalize(*args: Any, **kwargs: Any) -> Any:
            threads["normalize"] = threading.get_ident()
            return normalize(*args, **kwargs)

        def recording_from_catalog(*args: Any, **kwargs: Any) -> Any:
            threads["from_catalog"] = threading.get_ident()
            return from_catalog(*args, **kwargs)

        with (
            patch("docplane.index.ops.normalize", side_effect=recording_normalize),
            patch.object(ProjectIndex, "from_catalog", side_effect=recording_from_catalog),
        ):
            summary = await ops.ingest_tree("k", hello_tree)

        assert summary.embedded_count == 1
        assert set(threads) == {"normalize", "from_catalog"}
        assert loop_thread not in threads.values()


class TestConcurrency:
    @pytest.fixture
    def gated(self, keyword_backend: Any) -> Iterator[GatedBackend]:
        backend = GatedBackend(keyword_backend, marker="socket")
        yield backend
        backend.release.set()

    @pytest.fixture
    def gated_ops(self, gated: GatedBackend) -> DocIndexOps:
        provider = EmbeddingProvider(lambda: gated, model_name="stub")
        provider.initialize()
        return DocIndexOps(IndexStore(), provider, TreeExtractor({}))

    async def _start_blocked_ingest(
        self, ops: DocIndexOps, gated: GatedBackend, tree_factory: Any
    ) -> asyncio.Task[Any]:
        tree = tree_factory(
            "net", [{"id": "1", "name": "Socket", "kind": "struct", "docs": "A network socket"}]
        )
        task = asyncio.create_task(ops.ingest_tree("net", tree))
        assert await asyncio.to_thread(gated.entered.wait, 5)
        return task

    @pytest.mark.asyncio
    async def test_query_completes_during_other_ingest(
        self,
        gated_ops: DocIndexOps,
        gated: GatedBackend,
        hello_tree: dict[str, Any],
        tree_factory: Any,
    ) -> None:
        await gated_ops.ingest_tree("k", hello_tree)
        task = await self._start_blocked_ingest(gated_ops, gated, tree_factory)

        results = await asyncio.wait_for(gated_ops.query("test function"), timeout=5)

        assert [r.item_full_path for r in results] == ["k::hello"]
        assert not task.done()
        gated.release.set()
        await task

    @pytest.mark.asyncio
    async def test_in_flight_project_not_yet_present(
        self, gated_ops: DocIndexOps, gated: GatedBackend, tree_factory: Any
    ) -> None:
        task = await self._start_blocked_ingest(gated_ops, gated, tree_factory)

        assert await gated_ops.list_projects() == []
        assert await gated_ops.query("network", project_path="net") == []
        with pytest.raises(ProjectNotFound):
            await gated_ops.get_item("net", "net::Socket")

        gated.release.set()
        summary = await task

        assert summary.embedded_count == 1
        assert await gated_ops.list_projects() == ["net"]
        results = await gated_ops.query("network", project_path="net")
        assert [r.item_full_path for r in results] == ["net::Socket"]


class TestQueryScenario:
    @pytest.mark.asyncio
    async def test_single_item_exact_score(
        self,
        ops: DocIndexOps,
        tmp_path: Path,
        keyword_backend: Any,
    ) -> None:
        project = str(tmp_path)
        await ops.ingest(project)

        results = await ops.query("test function", num_results=5)

        assert len(results) == 1
        (hit,) = results
        assert hit.project_path == project
        assert hit.item_full_path == "k::hello"
        assert hit.item_kind == "function"
        assert hit.description_snippet == "A test function"

        item = await ops.get_item(project, "k::hello")
        expected = cosine_similarity(
            np.asarray(keyword_backend.vector_for("test function")),
            np.asarray(keyword_backend.vector_for(format_embedding_text(item))),
        )
        assert hit.score == pytest.approx(expected, abs=1e-5)

    @pytest.mark.asyncio
    async def test_query_uses_project_filter(
        self, ops: DocIndexOps, tmp_path: Path
    ) -> None:
        await ops.ingest(str(tmp_path))

        assert await ops.query("test", project_path="/elsewhere") == []
        assert len(await ops.query("test", project_path=str(tmp_path))) == 1


class TestReads:
    @pytest.mark.asyncio
    async def test_list_projects(self, ops: DocIndexOps, tmp_path: Path) -> None:
        assert await ops.list_projects() == []

        (tmp_path / "b").mkdir()
        (tmp_path / "a").mkdir()
        await ops.ingest(str(tmp_path / "b"))
        await ops.ingest(str(tmp_path / "a"))

        assert await ops.list_projects() == [str(tmp_path / "a"), str(tmp_path / "b")]

    @pytest.mark.asyncio
    async def test_get_item(self, ops: DocIndexOps, tmp_path: Path) -> None:
        await ops.ingest(str(tmp_path))

        item = await ops.get_item(str(tmp_path), "k::hello")

        assert item.name == "hello"
        assert item.description == "A test function"

    @pytest.mark.asyncio
    async def test_get_item_unknown_project(self, ops: DocIndexOps) -> None:
        with pytest.raises(ProjectNotFound):
            await ops.get_item("/never", "k::hello")

    @pytest.mark.asyncio
    async def test_get_item_unknown_item(self, ops: DocIndexOps, tmp_path: Path) -> None:
        await ops.ingest(str(tmp_path))

        with pytest.raises(ItemNotFound) as exc_info:
            await ops.get_item(str(tmp_path), "k::missing")
        assert exc_info.value.details["item_path"] == "k::missing"

    @pytest.mark.asyncio
    async def test_stats(self, ops: DocIndexOps, tmp_path: Path) -> None:
        await ops.ingest(str(tmp_path))

        stats = await ops.stats()

        assert stats["projects"] == 1
        assert stats["items"] == 2  # crate root + hello
        assert stats["embedded"] == 1
        assert stats["embedding"] == {"state": "ready", "model": "stub", "dimension": 9}


class TestFromConfig:
    def test_defaults_to_rustdoc_extractor(
        self, ready_provider: EmbeddingProvider, tmp_path: Path
    ) -> None:
        config = DocPlaneConfig.model_validate({"server": {"state_dir": str(tmp_path)}})

        ops = DocIndexOps.from_config(config, ready_provider)

        assert isinstance(ops.extractor, RustdocExtractor)
        assert isinstance(ops.store, IndexStore)

    def test_explicit_store_shared(self, ready_provider: EmbeddingProvider) -> None:
        store = IndexStore()

        ops = DocIndexOps.from_config(DocPlaneConfig(), ready_provider, store=store)

        assert ops.store is store

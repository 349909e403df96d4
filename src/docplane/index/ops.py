"""High-level orchestration of the documentation index.

DocIndexOps is the single entry point both request surfaces (MCP tools and
the daemon's local routes) share. It owns the pipeline:

    extract -> normalize -> embed (best-effort) -> upsert

Embedding happens before the store lock is taken; the store only ever sees
complete ProjectIndex objects.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from docplane.core.errors import (
    DocPlaneError,
    ExtractionError,
    InvalidInput,
    ItemNotFound,
    ProjectNotFound,
)
from docplane.index.builder import build_project_index
from docplane.index.extraction import DocExtractor, JsonFileExtractor, RustdocExtractor
from docplane.index.models import IngestSummary
from docplane.index.normalizer import normalize
from docplane.index.query import QueryEngine
from docplane.index.store import IndexStore

if TYPE_CHECKING:
    from docplane.config.models import DocPlaneConfig
    from docplane.index.embedding import EmbeddingProvider
    from docplane.index.models import Item, QueryResultItem

log = structlog.get_logger(__name__)


class DocIndexOps:
    """Ingestion, query and lookup over one shared IndexStore.

    Usage::

        ops = DocIndexOps.from_config(config, provider)
        summary = await ops.ingest("/path/to/crate")
        results = await ops.query("parse a config file", num_results=5)
    """

    def __init__(
        self,
        store: IndexStore,
        provider: EmbeddingProvider,
        extractor: DocExtractor,
        *,
        skip_stripped: bool = False,
        default_num_results: int = 5,
        snippet_chars: int = 300,
    ) -> None:
        self.store = store
        self.provider = provider
        self.extractor = extractor
        self._skip_stripped = skip_stripped
        self._engine = QueryEngine(
            store,
            provider,
            default_num_results=default_num_results,
            snippet_chars=snippet_chars,
        )

    @classmethod
    def from_config(
        cls,
        config: DocPlaneConfig,
        provider: EmbeddingProvider,
        *,
        store: IndexStore | None = None,
        extractor: DocExtractor | None = None,
    ) -> DocIndexOps:
        if extractor is None:
            extractor = RustdocExtractor(
                config.server.state_path / "rustdoc_json",
                toolchain=config.ingest.toolchain,
                document_private_items=config.ingest.document_private_items,
                timeout_sec=config.ingest.extraction_timeout_sec,
            )
        return cls(
            store or IndexStore(),
            provider,
            extractor,
            skip_stripped=config.ingest.skip_stripped,
            default_num_results=config.query.default_num_results,
            snippet_chars=config.query.snippet_chars,
        )

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest(self, path: str, *, json_path: str | None = None) -> IngestSummary:
        """Extract, normalize, embed and store one project.

        ``path`` is used verbatim as the project identifier. With ``json_path``
        the extraction toolchain is skipped and that file is read instead.

        Raises:
            InvalidInput: ``path`` is not an existing directory.
            ExtractionError: The documentation toolchain failed.
            SchemaError: The documentation tree is unusable.
        """
        if not isinstance(path, str) or not path.strip():
            raise InvalidInput.bad_value("path", path, "must be a non-empty string")
        project_dir = Path(path).expanduser()
        if not project_dir.is_dir():
            raise InvalidInput.not_a_directory(path)

        extractor: DocExtractor = self.extractor
        if json_path is not None:
            extractor = JsonFileExtractor(Path(json_path).expanduser())

        start = time.monotonic()
        log.info("ingest.started", project=path)
        try:
            tree = await asyncio.to_thread(extractor.extract, project_dir)
        except DocPlaneError:
            raise
        except Exception as e:
            raise ExtractionError.failed(path, str(e)) from e

        return await self._ingest_tree(path, tree, start)

    async def ingest_tree(self, project_id: str, tree: dict[str, Any]) -> IngestSummary:
        """Run the pipeline from an already-extracted documentation tree."""
        log.info("ingest.started", project=project_id, source="tree")
        return await self._ingest_tree(project_id, tree, time.monotonic())

    async def _ingest_tree(
        self, project_id: str, tree: dict[str, Any], start: float
    ) -> IngestSummary:
        catalog = await asyncio.to_thread(
            normalize, tree, skip_stripped=self._skip_stripped, project=project_id
        )
        built = await build_project_index(catalog, self.provider, project=project_id)
        total = await self.store.upsert(project_id, built.index)

        summary = IngestSummary(
            project_path=project_id,
            crate_name=catalog.crate_name,
            item_count=built.index.item_count,
            embedded_count=built.index.embedded_count,
            total_projects=total,
            duration_seconds=time.monotonic() - start,
            embedding_error=built.embedding_error.message if built.embedding_error else None,
        )
        log.info(
            "ingest.complete",
            project=project_id,
            crate=summary.crate_name,
            items=summary.item_count,
            embedded=summary.embedded_count,
            total_projects=total,
            elapsed_s=round(summary.duration_seconds, 2),
        )
        return summary

    # =========================================================================
    # Reads
    # =========================================================================

    async def query(
        self,
        text: str,
        project_path: str | None = None,
        num_results: int | None = None,
    ) -> list[QueryResultItem]:
        return await self._engine.query(text, project_path, num_results)

    async def list_projects(self) -> list[str]:
        return sorted(await self.store.list())

    async def get_item(self, project_path: str, item_path: str) -> Item:
        index = await self.store.get(project_path)
        if index is None:
            raise ProjectNotFound.for_path(project_path)
        item = index.items.get(item_path)
        if item is None:
            raise ItemNotFound.for_path(project_path, item_path)
        return item

    async def stats(self) -> dict[str, Any]:
        snapshot = await self.store.snapshot()
        return {
            "projects": len(snapshot),
            "items": sum(index.item_count for _, index in snapshot),
            "embedded": sum(index.embedded_count for _, index in snapshot),
            "embedding": {
                "state": self.provider.state.value,
                "model": self.provider.model_name,
                "dimension": self.provider.dimension,
            },
        }

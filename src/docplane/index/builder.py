"""Project index construction: catalog + embeddings -> ProjectIndex."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from docplane.core.errors import DocPlaneError
from docplane.index.embedding import EmbeddingProvider
from docplane.index.models import CrateCatalog, Item, ProjectIndex

log = structlog.get_logger(__name__)


def format_embedding_text(item: Item) -> str:
    """Stable embedding input. Changing it makes old and new vectors incomparable."""
    return (
        f"Crate: {item.crate_name}, Item: {item.name}, "
        f"Type: {item.raw_kind or item.item_kind.value}, Docs: {item.description or ''}"
    )


@dataclass(frozen=True, slots=True)
class BuildResult:
    index: ProjectIndex
    embedding_error: DocPlaneError | None = None


async def build_project_index(
    catalog: CrateCatalog,
    provider: EmbeddingProvider,
    *,
    project: str | None = None,
) -> BuildResult:
    """Embed every described item in one batch and assemble the index.

    Embedding is best-effort: on failure the index is built from the catalog
    alone and the error is returned alongside it.
    """
    selected = catalog.embeddable_items()
    if not selected:
        return BuildResult(index=ProjectIndex.from_catalog(catalog))

    texts = [format_embedding_text(item) for item in selected]
    try:
        vectors = await provider.aembed_batch(texts)
    except DocPlaneError as e:
        log.warning(
            "ingest.embedding_failed",
            project=project,
            crate=catalog.crate_name,
            items=len(selected),
            error=e.error_name,
            message=e.message,
        )
        return BuildResult(index=ProjectIndex.from_catalog(catalog), embedding_error=e)

    embeddings = {item.full_path: vec for item, vec in zip(selected, vectors, strict=True)}
    index = await asyncio.to_thread(ProjectIndex.from_catalog, catalog, embeddings)
    return BuildResult(index=index)

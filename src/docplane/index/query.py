"""Top-K cosine similarity search across project indexes."""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any

import numpy as np
import structlog

from docplane.config.constants import QUERY_MAX_RESULTS
from docplane.core.errors import InvalidInput
from docplane.index.embedding import EmbeddingProvider
from docplane.index.models import ProjectIndex, QueryResultItem
from docplane.index.store import IndexStore

log = structlog.get_logger(__name__)

_ELLIPSIS = "..."


def cosine_similarity(v1: Sequence[float] | np.ndarray, v2: Sequence[float] | np.ndarray) -> float:
    """dot(v1, v2) / (|v1| * |v2|).

    Zero-length, mismatched-length or zero-norm inputs score 0.0. The result
    is clamped to [-1, 1] so rounding never escapes the range.
    """
    a = np.asarray(v1, dtype=np.float64).ravel()
    b = np.asarray(v2, dtype=np.float64).ravel()
    if a.size == 0 or a.size != b.size:
        return 0.0
    denom = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if denom == 0.0 or not np.isfinite(denom):
        return 0.0
    score = float(np.dot(a, b)) / denom
    if not np.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def _score_project(query_vec: np.ndarray, index: ProjectIndex) -> list[tuple[str, float]]:
    paths = list(index.embeddings)
    if not paths:
        return []
    vectors = [index.embeddings[p] for p in paths]

    if query_vec.size and all(v.shape == query_vec.shape for v in vectors):
        matrix = np.vstack(vectors).astype(np.float64)
        q = query_vec.astype(np.float64)
        denom = np.linalg.norm(matrix, axis=1) * float(np.linalg.norm(q))
        dots = matrix @ q
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(denom > 0, dots / np.where(denom > 0, denom, 1.0), 0.0)
        scores = np.clip(np.nan_to_num(scores, nan=0.0), -1.0, 1.0)
        return [(p, float(s)) for p, s in zip(paths, scores, strict=True)]

    return [(p, cosine_similarity(query_vec, v)) for p, v in zip(paths, vectors, strict=True)]


def make_snippet(description: str | None, max_chars: int) -> str | None:
    """First ``max_chars`` characters, with ``...`` only when something was cut."""
    if description is None:
        return None
    if len(description) <= max_chars:
        return description
    return description[:max_chars] + _ELLIPSIS


def validate_num_results(k: Any) -> int:
    if isinstance(k, bool) or not isinstance(k, int):
        raise InvalidInput.bad_value("num_results", k, "must be an integer")
    if not (1 <= k <= QUERY_MAX_RESULTS):
        raise InvalidInput.bad_value("num_results", k, f"must be 1-{QUERY_MAX_RESULTS}")
    return k


class QueryEngine:
    """Embeds the query, scans candidate projects, ranks, truncates."""

    def __init__(
        self,
        store: IndexStore,
        provider: EmbeddingProvider,
        *,
        default_num_results: int = 5,
        snippet_chars: int = 300,
    ) -> None:
        self._store = store
        self._provider = provider
        self._default_k = default_num_results
        self._snippet_chars = snippet_chars

    async def query(
        self,
        text: str,
        project_filter: str | None = None,
        k: int | None = None,
    ) -> list[QueryResultItem]:
        """Rank every embedded item by similarity to ``text``.

        Results are in non-increasing score order. Equal scores keep project
        insertion order, then item order within the project.

        Raises:
            InvalidInput: Empty query or ``k`` out of range.
            EmbeddingUnavailable / EmbeddingInitFailure / EmbeddingFailure:
                The query text could not be embedded.
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput.bad_value("query", text, "must be a non-empty string")
        limit = validate_num_results(self._default_k if k is None else k)

        start = time.monotonic()
        query_vec = np.asarray(await self._provider.aembed_one(text), dtype=np.float32)
        candidates = await self._store.snapshot(project_filter)

        scored: list[tuple[float, str, str]] = []
        for project_id, index in candidates:
            for full_path, score in _score_project(query_vec, index):
                scored.append((score, project_id, full_path))

        scored.sort(key=lambda entry: -entry[0])
        indexes = dict(candidates)

        results: list[QueryResultItem] = []
        for score, project_id, full_path in scored[:limit]:
            item = indexes[project_id].items.get(full_path)
            if item is None:
                log.warning("query.item_missing", project=project_id, full_path=full_path)
                continue
            results.append(
                QueryResultItem(
                    project_path=project_id,
                    item_full_path=full_path,
                    item_kind=item.item_kind.value,
                    description_snippet=make_snippet(item.description, self._snippet_chars),
                    score=score,
                )
            )

        log.info(
            "query.complete",
            projects=len(candidates),
            scored=len(scored),
            returned=len(results),
            k=limit,
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return results

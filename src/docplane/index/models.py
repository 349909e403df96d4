"""Typed models for the documentation semantic index.

The raw documentation tree never travels past the normalizer; everything
downstream works on these types.

- Item: one documented entity, keyed by its full path
- CrateCatalog: normalizer output for one crate
- ProjectIndex: immutable catalog + embeddings snapshot for one project
- QueryResultItem: one ranked hit
- IngestSummary: what an ingestion produced
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

import numpy as np

from docplane.config.constants import PATH_SEPARATOR

# ============================================================================
# ENUMS
# ============================================================================


class ItemKind(StrEnum):
    """Coarse item kind tag.

    Raw schema kinds outside this set (impl, constant, macro, ...) map to OTHER;
    the raw label is kept on the Item as ``raw_kind``.
    """

    FUNCTION = "function"
    STRUCT = "struct"
    MODULE = "module"
    ENUM = "enum"
    TRAIT = "trait"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw_kind: str) -> ItemKind:
        try:
            return cls(raw_kind)
        except ValueError:
            return cls.OTHER


# ============================================================================
# CATALOG
# ============================================================================


@dataclass(frozen=True, slots=True)
class Item:
    """One documented entity (function, struct, module, ...)."""

    id: str
    crate_name: str
    name: str
    module_path: tuple[str, ...]
    full_path: str
    item_kind: ItemKind
    description: str | None = None
    raw_kind: str = ""
    is_stripped: bool = False

    @property
    def is_embeddable(self) -> bool:
        return bool(self.description and self.description.strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "crate_name": self.crate_name,
            "name": self.name,
            "module_path": list(self.module_path),
            "full_path": self.full_path,
            "item_kind": self.item_kind.value,
            "raw_kind": self.raw_kind,
            "description": self.description,
            "is_stripped": self.is_stripped,
        }


def build_full_path(
    crate_name: str,
    module_path: tuple[str, ...] | list[str],
    name: str,
    raw_kind: str,
) -> str:
    """Join crate, module path and name into the canonical item key.

    A module whose path already ends with its own name is not suffixed again,
    so ``crate::mod`` never becomes ``crate::mod::mod``.
    """
    parts = [crate_name, *module_path]
    if raw_kind != ItemKind.MODULE.value or not module_path or module_path[-1] != name:
        parts.append(name)
    return PATH_SEPARATOR.join(parts)


@dataclass(frozen=True, slots=True)
class CrateCatalog:
    """Normalizer output: a flat item catalog for one crate."""

    crate_name: str
    items: Mapping[str, Item]
    format_version: int | None = None
    skipped_unnamed: int = 0
    skipped_stripped: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", MappingProxyType(dict(self.items)))

    def __len__(self) -> int:
        return len(self.items)

    def embeddable_items(self) -> list[Item]:
        """Items with a non-empty description, in catalog order."""
        return [item for item in self.items.values() if item.is_embeddable]


# ============================================================================
# PROJECT INDEX
# ============================================================================


@dataclass(frozen=True, slots=True)
class ProjectIndex:
    """Immutable snapshot for one project.

    Every key in ``embeddings`` exists in ``items``. Items without a
    description, or whose embedding failed, have no vector.
    """

    crate_name: str
    items: Mapping[str, Item]
    embeddings: Mapping[str, np.ndarray[Any, np.dtype[np.float32]]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        orphans = [path for path in self.embeddings if path not in self.items]
        if orphans:
            raise ValueError(f"Embeddings without catalog items: {orphans[:5]}")
        frozen_vectors: dict[str, np.ndarray[Any, np.dtype[np.float32]]] = {}
        for path, vec in self.embeddings.items():
            arr = np.array(vec, dtype=np.float32)
            arr.setflags(write=False)
            frozen_vectors[path] = arr
        object.__setattr__(self, "items", MappingProxyType(dict(self.items)))
        object.__setattr__(self, "embeddings", MappingProxyType(frozen_vectors))

    @classmethod
    def from_catalog(
        cls,
        catalog: CrateCatalog,
        embeddings: Mapping[str, np.ndarray[Any, np.dtype[np.float32]]] | None = None,
    ) -> ProjectIndex:
        return cls(
            crate_name=catalog.crate_name,
            items=catalog.items,
            embeddings=embeddings or {},
        )

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def embedded_count(self) -> int:
        return len(self.embeddings)


# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True, slots=True)
class QueryResultItem:
    """One ranked hit. Field names match the wire format."""

    project_path: str
    item_full_path: str
    item_kind: str
    description_snippet: str | None
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_path": self.project_path,
            "item_full_path": self.item_full_path,
            "item_kind": self.item_kind,
            "description_snippet": self.description_snippet,
            "score": self.score,
        }


@dataclass(frozen=True, slots=True)
class IngestSummary:
    """Result of one ingestion."""

    project_path: str
    crate_name: str
    item_count: int
    embedded_count: int
    total_projects: int
    duration_seconds: float
    embedding_error: str | None = None

    @property
    def message(self) -> str:
        return (
            f"Successfully processed project {self.project_path} and embedded "
            f"{self.embedded_count} items. Total processed projects: {self.total_projects}."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "project_path": self.project_path,
            "crate_name": self.crate_name,
            "item_count": self.item_count,
            "embedded_count": self.embedded_count,
            "total_projects": self.total_projects,
            "duration_seconds": round(self.duration_seconds, 3),
            "embedding_error": self.embedding_error,
        }

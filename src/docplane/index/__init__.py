"""Index module - documentation semantic index.

Pipeline: rustdoc JSON -> normalizer -> item catalog -> embeddings
-> ProjectIndex -> IndexStore <- QueryEngine.

Public API is in `docplane.index.ops`:
- DocIndexOps: Ingestion, query and lookup shared by every request surface
"""

from docplane.index.embedding import EmbeddingProvider, FastEmbedBackend, ProviderState
from docplane.index.extraction import DocExtractor, JsonFileExtractor, RustdocExtractor
from docplane.index.models import (
    CrateCatalog,
    IngestSummary,
    Item,
    ItemKind,
    ProjectIndex,
    QueryResultItem,
)
from docplane.index.normalizer import normalize
from docplane.index.ops import DocIndexOps
from docplane.index.query import QueryEngine, cosine_similarity
from docplane.index.store import IndexStore

__all__ = [
    # Models
    "CrateCatalog",
    "IngestSummary",
    "Item",
    "ItemKind",
    "ProjectIndex",
    "QueryResultItem",
    # Pipeline
    "DocExtractor",
    "JsonFileExtractor",
    "RustdocExtractor",
    "normalize",
    "EmbeddingProvider",
    "FastEmbedBackend",
    "ProviderState",
    "IndexStore",
    "QueryEngine",
    "cosine_similarity",
    "DocIndexOps",
]

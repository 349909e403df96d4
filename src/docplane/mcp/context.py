"""Application context for MCP handlers and daemon routes.

Single object passed to every request surface, holding the one shared
DocIndexOps (and through it the one IndexStore and EmbeddingProvider).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docplane.config.models import DocPlaneConfig
    from docplane.index.embedding import EmbeddingProvider
    from docplane.index.extraction import DocExtractor
    from docplane.index.ops import DocIndexOps
    from docplane.index.store import IndexStore


@dataclass
class AppContext:
    """Context object passed to all MCP tool handlers and HTTP routes."""

    config: DocPlaneConfig
    ops: DocIndexOps

    @property
    def provider(self) -> EmbeddingProvider:
        return self.ops.provider

    @classmethod
    def create(
        cls,
        config: DocPlaneConfig,
        provider: EmbeddingProvider | None = None,
        store: IndexStore | None = None,
        extractor: DocExtractor | None = None,
    ) -> AppContext:
        """Factory to create context with all ops wired together.

        Args:
            config: Resolved configuration
            provider: Optional existing EmbeddingProvider (built from config if omitted)
            store: Optional existing IndexStore
            extractor: Optional extractor (cargo rustdoc by default)
        """
        from docplane.index.embedding import EmbeddingProvider as EP
        from docplane.index.ops import DocIndexOps

        if provider is None:
            provider = EP.from_config(config.embedding)

        ops = DocIndexOps.from_config(config, provider, store=store, extractor=extractor)
        return cls(config=config, ops=ops)

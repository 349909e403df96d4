"""Tests for mcp/context.py."""

from __future__ import annotations

from unittest.mock import patch

from docplane.config.models import DocPlaneConfig
from docplane.index.embedding import EmbeddingProvider, ProviderState
from docplane.index.store import IndexStore
from docplane.mcp.context import AppContext


class TestAppContext:
    def test_create_with_provider(self, ready_provider: EmbeddingProvider) -> None:
        store = IndexStore()

        ctx = AppContext.create(DocPlaneConfig(), provider=ready_provider, store=store)

        assert ctx.provider is ready_provider
        assert ctx.ops.store is store

    def test_create_builds_lazy_provider(self) -> None:
        config = DocPlaneConfig.model_validate({"embedding": {"model_name": "x/y"}})

        with patch("docplane.index.embedding.FastEmbedBackend") as backend_cls:
            ctx = AppContext.create(config)

        backend_cls.assert_not_called()
        assert ctx.provider.model_name == "x/y"
        assert ctx.provider.state is ProviderState.NOT_INITIALIZED

"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from pathlib import Path

# Insert local src directory at the beginning of sys.path
# This ensures that the local docplane package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of docplane modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("docplane"):
        del sys.modules[module_name]


# =============================================================================
# Shared fixtures
# =============================================================================

import re  # noqa: E402
import threading  # noqa: E402
import time  # noqa: E402
from collections.abc import Callable, Iterator  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

VOCAB = ("hello", "greet", "test", "function", "parse", "config", "network", "socket", "file")


class KeywordBackend:
    """Deterministic embedding backend: one dimension per vocabulary word.

    A text's vector counts vocabulary occurrences, so similarity between two
    texts is predictable by inspection. Texts with no vocabulary words embed
    to the zero vector.
    """

    def __init__(self, vocab: tuple[str, ...] = VOCAB) -> None:
        self.vocab = vocab
        self.calls: list[list[str]] = []

    def vector_for(self, text: str) -> list[float]:
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(v)) for v in self.vocab]

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector_for(t) for t in texts]


@pytest.fixture
def keyword_backend() -> KeywordBackend:
    return KeywordBackend()


@pytest.fixture
def ready_provider(keyword_backend: KeywordBackend) -> Any:
    """Initialized EmbeddingProvider over the keyword backend."""
    from docplane.index.embedding import EmbeddingProvider

    provider = EmbeddingProvider(lambda: keyword_backend, model_name="stub")
    provider.initialize()
    return provider


@pytest.fixture
def loading_provider(keyword_backend: KeywordBackend) -> Iterator[Any]:
    """EmbeddingProvider held in INITIALIZING by a loader thread.

    The load completes at teardown.
    """
    from docplane.index.embedding import EmbeddingProvider, ProviderState

    release = threading.Event()

    def load() -> KeywordBackend:
        release.wait(timeout=10)
        return keyword_backend

    provider = EmbeddingProvider(load, model_name="stub")
    loader = threading.Thread(target=provider.initialize, daemon=True)
    loader.start()
    deadline = time.monotonic() + 5
    while provider.state is not ProviderState.INITIALIZING:
        assert time.monotonic() < deadline, "loader thread never started"
        time.sleep(0.001)
    yield provider
    release.set()
    loader.join(timeout=5)


def build_tree(
    crate: str = "k",
    items: list[dict[str, Any]] | None = None,
    *,
    root_id: str = "0",
) -> dict[str, Any]:
    """Minimal rustdoc-shaped tree.

    Each entry in ``items`` takes ``id``, ``name``, ``kind``, optional ``docs``,
    ``path`` (module path) and ``stripped``.
    """
    index: dict[str, Any] = {
        root_id: {"id": root_id, "name": crate, "kind": "module", "docs": None, "inner": {}},
    }
    paths: dict[str, Any] = {root_id: {"path": []}}
    for spec in items or []:
        index[spec["id"]] = {
            "id": spec["id"],
            "name": spec.get("name"),
            "kind": spec.get("kind", "function"),
            "docs": spec.get("docs"),
            "inner": {"is_stripped": spec.get("stripped", False)},
        }
        paths[spec["id"]] = {"path": list(spec.get("path", []))}
    return {"root": root_id, "format_version": 30, "index": index, "paths": paths}


@pytest.fixture
def tree_factory() -> Callable[..., dict[str, Any]]:
    return build_tree

"""Embedding provider: text -> L2-normalized float32 vectors.

One EmbeddingProvider is built at server startup and shared by every
caller. The model is loaded once, by ``initialize()`` or by the first embed
call, whichever comes first. The state machine lets callers distinguish
"still loading" (retry later) from "failed to load" (needs reconfiguration):

    NOT_INITIALIZED -> INITIALIZING -> READY
                                    -> FAILED

Default backend: fastembed ``TextEmbedding`` (ONNX Runtime), with the CUDA
execution provider picked up automatically when onnxruntime reports it.
"""

from __future__ import annotations

import asyncio
import os
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np
import structlog

from docplane.core.errors import (
    EmbeddingFailure,
    EmbeddingInitFailure,
    EmbeddingUnavailable,
)

if TYPE_CHECKING:
    from docplane.config.models import EmbeddingConfig

log = structlog.get_logger(__name__)

Vector = np.ndarray[Any, np.dtype[np.float32]]

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"


class ProviderState(StrEnum):
    NOT_INITIALIZED = "not_initialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class EmbeddingBackend(Protocol):
    """Opaque text -> vector model."""

    def embed(self, texts: list[str]) -> Iterable[Sequence[float]]: ...


def _detect_providers() -> list[str]:
    """Detect available ONNX Runtime execution providers."""
    try:
        import onnxruntime as ort  # type: ignore[import-not-found]

        available = set(ort.get_available_providers())
    except Exception:
        return []

    providers: list[str] = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


class FastEmbedBackend:
    """fastembed TextEmbedding behind a device lock.

    The ONNX session owns one compute device; concurrent ``embed`` calls are
    serialized on it.
    """

    def __init__(
        self,
        model_name: str = _DEFAULT_MODEL,
        *,
        threads: int | None = None,
        cache_dir: str | None = None,
    ) -> None:
        from fastembed import TextEmbedding  # type: ignore[import-not-found]

        providers = _detect_providers()
        threads = threads or max(1, (os.cpu_count() or 4) // 2)
        start = time.monotonic()
        kwargs: dict[str, Any] = {"model_name": model_name, "threads": threads}
        if providers:
            kwargs["providers"] = providers
        if cache_dir:
            kwargs["cache_dir"] = str(cache_dir)
        self._model = TextEmbedding(**kwargs)
        self._device_lock = threading.Lock()
        log.info(
            "embedding.model_loaded",
            model=model_name,
            providers=providers or ["CPUExecutionProvider"],
            threads=threads,
            elapsed_s=round(time.monotonic() - start, 2),
        )

    def embed(self, texts: list[str]) -> list[Sequence[float]]:
        with self._device_lock:
            return list(self._model.embed(texts))


def l2_normalize(matrix: np.ndarray) -> np.ndarray:
    """Row-wise L2 normalization; zero rows stay zero."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms > 0, norms, 1.0)
    return (matrix / safe).astype(np.float32)


class EmbeddingProvider:
    """Process-wide embedding handle with exclusive lazy initialization."""

    def __init__(
        self,
        backend_factory: Callable[[], EmbeddingBackend],
        *,
        model_name: str = _DEFAULT_MODEL,
        batch_size: int = 256,
        max_text_chars: int = 1500,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._factory = backend_factory
        self._model_name = model_name
        self._batch_size = batch_size
        self._max_text_chars = max_text_chars
        self._init_lock = threading.Lock()
        self._state = ProviderState.NOT_INITIALIZED
        self._backend: EmbeddingBackend | None = None
        self._init_error: EmbeddingInitFailure | None = None
        self._dimension: int | None = None

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> EmbeddingProvider:
        def factory() -> EmbeddingBackend:
            return FastEmbedBackend(
                config.model_name, threads=config.threads, cache_dir=config.cache_dir
            )

        return cls(
            factory,
            model_name=config.model_name,
            batch_size=config.batch_size,
            max_text_chars=config.max_text_chars,
        )

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int | None:
        """Vector length, known after the first successful embed."""
        return self._dimension

    @property
    def init_error(self) -> EmbeddingInitFailure | None:
        return self._init_error

    def initialize(self) -> None:
        """Load the backend. Blocks while another caller is loading it.

        Raises:
            EmbeddingInitFailure: Loading failed, now or on an earlier attempt.
        """
        with self._init_lock:
            if self._state is ProviderState.READY:
                return
            if self._state is ProviderState.FAILED:
                assert self._init_error is not None
                raise self._init_error

            self._state = ProviderState.INITIALIZING
            log.info("embedding.initializing", model=self._model_name)
            try:
                backend = self._factory()
            except Exception as e:
                self._init_error = EmbeddingInitFailure.from_exception(self._model_name, e)
                self._state = ProviderState.FAILED
                log.error("embedding.init_failed", model=self._model_name, error=str(e))
                raise self._init_error from e

            self._backend = backend
            self._state = ProviderState.READY
            log.info("embedding.ready", model=self._model_name)

    def _require_backend(self) -> EmbeddingBackend:
        if self._state is ProviderState.NOT_INITIALIZED:
            self.initialize()
        state = self._state
        if state is ProviderState.READY and self._backend is not None:
            return self._backend
        if state is ProviderState.FAILED and self._init_error is not None:
            raise self._init_error
        raise EmbeddingUnavailable.not_ready(state.value)

    def _prepare(self, text: str) -> str:
        if len(text) > self._max_text_chars:
            return text[: self._max_text_chars]
        return text

    def embed_batch(self, texts: Sequence[str]) -> list[Vector]:
        """Embed ``texts`` in order. Either every text gets a vector or this raises.

        Loads the backend first if nobody has. Callers arriving while another
        caller is loading it do not wait.

        Raises:
            EmbeddingUnavailable: Another caller is still loading the backend.
            EmbeddingInitFailure: Provider failed to initialize.
            EmbeddingFailure: The backend errored or returned unusable output.
        """
        if not texts:
            return []
        backend = self._require_backend()
        prepared = [self._prepare(t) for t in texts]

        chunks: list[np.ndarray] = []
        for offset in range(0, len(prepared), self._batch_size):
            chunk = prepared[offset : offset + self._batch_size]
            try:
                raw = list(backend.embed(chunk))
            except Exception as e:
                raise EmbeddingFailure.batch(len(texts), str(e)) from e
            if len(raw) != len(chunk):
                raise EmbeddingFailure.batch(
                    len(texts), f"backend returned {len(raw)} vectors for {len(chunk)} texts"
                )
            try:
                matrix = np.asarray(raw, dtype=np.float32)
            except (TypeError, ValueError) as e:
                raise EmbeddingFailure.batch(len(texts), f"ragged vectors: {e}") from e
            if matrix.ndim != 2 or matrix.shape[1] == 0:
                raise EmbeddingFailure.batch(len(texts), f"unexpected shape {matrix.shape}")
            if not np.isfinite(matrix).all():
                raise EmbeddingFailure.batch(len(texts), "non-finite values in output")
            chunks.append(matrix)

        dims = {c.shape[1] for c in chunks}
        if len(dims) != 1:
            raise EmbeddingFailure.batch(len(texts), f"inconsistent dimensions {sorted(dims)}")
        (dim,) = dims
        if self._dimension is not None and dim != self._dimension:
            raise EmbeddingFailure.batch(
                len(texts), f"dimension changed from {self._dimension} to {dim}"
            )
        self._dimension = dim

        normalized = l2_normalize(np.vstack(chunks))
        log.debug("embedding.batch", count=len(texts), dim=dim)
        return list(normalized)

    def embed_one(self, text: str) -> Vector:
        return self.embed_batch([text])[0]

    async def ainitialize(self) -> None:
        await asyncio.to_thread(self.initialize)

    async def aembed_batch(self, texts: Sequence[str]) -> list[Vector]:
        return await asyncio.to_thread(self.embed_batch, list(texts))

    async def aembed_one(self, text: str) -> Vector:
        return await asyncio.to_thread(self.embed_one, text)

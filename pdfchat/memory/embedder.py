# pdfchat/memory/embedder.py

"""
Embedding gateway with lazy provider initialization and batching.

Architecture contract:
chunker → embedder → index

Guarantees:
• One provider handle per gateway, built at most once (ensure_ready)
• A failed initialization is remembered and never retried
• Batches are embedded concurrently, results keep input order
• Every vector is finite and has the process-wide dimension
• Every provider call is bounded by a timeout
"""

import asyncio
import logging
from typing import Callable, List, Optional

import numpy as np
from openai import AsyncOpenAI

from pdfchat.config import (
    EMBEDDING_MODEL,
    EMBED_BATCH_SIZE,
    EMBED_MAX_CONCURRENCY,
    EMBED_TIMEOUT_SECONDS,
)
from pdfchat.errors import (
    DimensionMismatch,
    DocumentQAError,
    EmbedderUnavailable,
    EmbeddingCorrupt,
)

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """
    Text → vector provider backed by the OpenAI embeddings API.

    Any object with an async embed(texts) -> list of vectors method can
    stand in for it.
    """

    def __init__(self, api_key: str, model: str = EMBEDDING_MODEL):

        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

        logger.info(
            "Embedding provider initialized",
            extra={"model": model, "provider": "openai"},
        )

    async def embed(self, texts: List[str]) -> List[List[float]]:

        response = await self._client.embeddings.create(
            model=self._model,
            input=texts,
        )

        return [item.embedding for item in response.data]

    async def close(self):

        await self._client.close()


class Embedder:
    """
    Process-wide embedding gateway.

    Responsibilities:
    • Build the provider lazily, once, on first use
    • Split work into batches and fan them out
    • Reject malformed vectors before they reach any index
    """

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def __init__(
        self,
        provider_factory: Callable[[], object],
        timeout_seconds: float = EMBED_TIMEOUT_SECONDS,
        batch_size: int = EMBED_BATCH_SIZE,
        max_concurrency: int = EMBED_MAX_CONCURRENCY,
    ):

        if batch_size <= 0:
            raise ValueError(f"Invalid embedding batch size: {batch_size}")

        self._factory = provider_factory
        self._timeout = timeout_seconds
        self._batch_size = batch_size

        self._provider = None
        self._init_error: Optional[Exception] = None
        self._init_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(max_concurrency)

        self._dimension: Optional[int] = None

    async def ensure_ready(self):
        """
        Return the provider, building it on first call.

        Concurrent first callers wait on the same lock, so the factory
        runs at most once.
        """

        if self._provider is not None:
            return self._provider

        async with self._init_lock:

            if self._provider is not None:
                return self._provider

            if self._init_error is not None:
                raise EmbedderUnavailable(
                    f"Embedding provider failed to initialize: {self._init_error}"
                )

            try:

                self._provider = self._factory()

            except Exception as e:

                self._init_error = e

                logger.critical(
                    "Embedding provider initialization failed",
                    extra={"error": str(e)},
                )

                raise EmbedderUnavailable(
                    f"Embedding provider failed to initialize: {e}"
                )

        return self._provider

    # ============================================================
    # PUBLIC API
    # ============================================================

    async def embed(self, text: str) -> np.ndarray:

        vectors = await self.embed_batch([text])

        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> np.ndarray:
        """
        Embed many texts. Row i of the result belongs to texts[i].

        Any failing batch fails the whole call.
        """

        provider = await self.ensure_ready()

        if not texts:
            return np.empty((0, self._dimension or 0), dtype="float32")

        batches = [
            texts[start:start + self._batch_size]
            for start in range(0, len(texts), self._batch_size)
        ]

        logger.info(
            "Embedding started",
            extra={
                "chunks": len(texts),
                "batches": len(batches),
                "batch_size": self._batch_size,
            },
        )

        tasks = [
            asyncio.ensure_future(self._embed_one_batch(provider, batch))
            for batch in batches
        ]

        try:

            results = await asyncio.gather(*tasks)

        except BaseException:

            # No batch may keep running once the call has failed
            for task in tasks:
                task.cancel()

            await asyncio.gather(*tasks, return_exceptions=True)

            raise

        embeddings = np.vstack(results)

        logger.info(
            "Embedding completed",
            extra={
                "chunks": len(texts),
                "dimension": self._dimension,
            },
        )

        return embeddings

    # ============================================================
    # INTERNALS
    # ============================================================

    async def _embed_one_batch(self, provider, batch: List[str]) -> np.ndarray:

        async with self._semaphore:

            try:

                raw = await asyncio.wait_for(
                    provider.embed(batch),
                    timeout=self._timeout,
                )

            except asyncio.TimeoutError:

                logger.warning(
                    "Embedding request timed out",
                    extra={"timeout_seconds": self._timeout, "batch": len(batch)},
                )

                raise EmbedderUnavailable(
                    f"Embedding provider timed out after {self._timeout}s"
                )

            except DocumentQAError:
                raise

            except Exception as e:

                logger.warning(
                    "Embedding request failed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )

                raise EmbedderUnavailable(f"Embedding generation failed: {e}")

        return self._validate(raw, expected=len(batch))

    def _validate(self, raw, expected: int) -> np.ndarray:

        try:
            vectors = np.asarray(raw, dtype="float32")
        except (TypeError, ValueError) as e:
            logger.error("Embedding payload malformed", extra={"error": str(e)})
            raise EmbeddingCorrupt(f"Malformed embedding payload: {e}")

        if vectors.ndim != 2 or vectors.shape[0] != expected or vectors.shape[1] == 0:
            logger.error(
                "Embedding payload has unexpected shape",
                extra={"shape": list(vectors.shape), "expected_rows": expected},
            )
            raise EmbeddingCorrupt(
                f"Expected {expected} vectors, got shape {vectors.shape}"
            )

        if not np.isfinite(vectors).all():
            bad_rows = np.where(~np.isfinite(vectors).all(axis=1))[0].tolist()
            logger.error(
                "Embedding contains non-finite components",
                extra={"rows": bad_rows},
            )
            raise EmbeddingCorrupt(
                f"Embedding contains non-finite components (rows {bad_rows})"
            )

        dimension = vectors.shape[1]

        if self._dimension is None:
            self._dimension = dimension

        elif dimension != self._dimension:
            logger.error(
                "Embedding dimension changed",
                extra={"expected": self._dimension, "actual": dimension},
            )
            raise DimensionMismatch(
                f"Embedding dimension {dimension} != established {self._dimension}"
            )

        return vectors

    # ============================================================
    # ACCESSORS
    # ============================================================

    @property
    def dimension(self) -> Optional[int]:
        """Fixed by the first successful call; None before that."""
        return self._dimension

    @property
    def is_ready(self) -> bool:
        return self._provider is not None

    async def close(self):

        close = getattr(self._provider, "close", None)

        if close is not None:
            await close()

    def health_check(self) -> dict:

        if self._init_error is not None:
            status = "unavailable"
        elif self._provider is None:
            status = "not_initialized"
        else:
            status = "healthy"

        return {
            "dimension": self._dimension,
            "status": status,
        }

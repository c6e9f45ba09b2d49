# pdfchat/api/services.py
"""
Per-application service bundle.

Built once at startup and stored on app.state.services. Request
handlers reach the session store and the model clients only through
get_services(), never through module globals.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from pdfchat.api.rate_limit import SlidingWindowRateLimiter
from pdfchat.config import Settings
from pdfchat.errors import UpstreamUnavailable
from pdfchat.llm.client import LLMClient
from pdfchat.memory.embedder import Embedder, OpenAIEmbeddingProvider
from pdfchat.memory.sessions import SessionStore, SessionSweeper
from pdfchat.observability.metrics import metrics_tracker
from pdfchat.observability.posthog_client import posthog_client
from pdfchat.workflow.ingestion import IngestionPipeline

logger = logging.getLogger(__name__)


@dataclass
class AppServices:

    settings: Settings
    sessions: SessionStore
    embedder: Embedder
    llm_client: object
    pipeline: IngestionPipeline
    upload_limiter: SlidingWindowRateLimiter
    sweeper: SessionSweeper

    async def close(self):

        for resource in (self.embedder, self.llm_client):

            close = getattr(resource, "close", None)

            if close is None:
                continue

            try:
                await close()
            except Exception as e:
                logger.warning(
                    "Resource close failed",
                    extra={"resource": type(resource).__name__, "error": str(e)},
                )


def _record_expiry(removed: int):

    metrics_tracker.increment("sessions_expired", removed)
    posthog_client.track_sessions_expired(removed)


def build_services(
    settings: Settings,
    embedder: Optional[Embedder] = None,
    llm_client=None,
    clock: Callable[[], float] = time.monotonic,
) -> AppServices:

    sessions = SessionStore(clock=clock)

    if embedder is None:
        embedder = Embedder(
            provider_factory=lambda: OpenAIEmbeddingProvider(
                api_key=settings.openai_api_key,
                model=settings.embedding_model,
            ),
            timeout_seconds=settings.embed_timeout_seconds,
        )

    if llm_client is None:
        llm_client = LLMClient(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    pipeline = IngestionPipeline(
        sessions=sessions,
        embedder=embedder,
        max_file_size_bytes=settings.max_file_size_bytes,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )

    upload_limiter = SlidingWindowRateLimiter(
        limit=settings.upload_rate_limit,
        window_seconds=settings.upload_rate_window_seconds,
        clock=clock,
    )

    sweeper = SessionSweeper(
        store=sessions,
        interval_seconds=settings.session_sweep_interval_seconds,
        timeout_seconds=settings.session_idle_timeout_seconds,
        on_sweep=_record_expiry,
    )

    return AppServices(
        settings=settings,
        sessions=sessions,
        embedder=embedder,
        llm_client=llm_client,
        pipeline=pipeline,
        upload_limiter=upload_limiter,
        sweeper=sweeper,
    )


def get_services(request: Request) -> AppServices:

    services = getattr(request.app.state, "services", None)

    if services is None:
        raise UpstreamUnavailable("Service is starting up")

    return services

# pdfchat/observability/posthog_client.py

"""
Optional product analytics via PostHog.

Disabled unless POSTHOG_API_KEY is set. Tracking failures are logged
and swallowed; analytics never affect request handling. Question text
and document content are never sent, only sizes and counts.
"""

import os
import logging
from typing import Optional, Dict, Any

from posthog import Posthog


logger = logging.getLogger(__name__)


class PostHogClient:

    def __init__(self, api_key: Optional[str] = None, host: Optional[str] = None):

        self._enabled = False
        self._client: Optional[Posthog] = None

        api_key = api_key or os.getenv("POSTHOG_API_KEY")
        host = host or os.getenv("POSTHOG_HOST", "https://app.posthog.com")

        if not api_key:
            logger.info("PostHog disabled: POSTHOG_API_KEY not set")
            return

        try:

            self._client = Posthog(
                project_api_key=api_key,
                host=host,
                timeout=5,
                flush_interval=1,
            )

            self._enabled = True

            logger.info(
                "PostHog client initialized",
                extra={"host": host}
            )

        except Exception as e:

            logger.error(
                "PostHog initialization failed",
                extra={"error": str(e)}
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ==========================================================
    # INTERNAL SAFE TRACK
    # ==========================================================

    def _track(
        self,
        distinct_id: str,
        event: str,
        properties: Optional[Dict[str, Any]] = None,
    ):

        if not self._enabled or not self._client:
            return

        try:

            self._client.capture(
                distinct_id=distinct_id,
                event=event,
                properties=properties or {},
            )

        except Exception as e:

            logger.warning(
                "PostHog tracking failed",
                extra={
                    "event": event,
                    "error": str(e),
                }
            )

    # ==========================================================
    # EVENTS
    # ==========================================================

    def track_document_upload(
        self,
        distinct_id: str,
        session_id: str,
        chunks: int,
        latency: float,
    ):

        self._track(
            distinct_id,
            "document_uploaded",
            {
                "session_id": session_id,
                "chunks": chunks,
                "latency_seconds": latency,
            },
        )

    def track_question(
        self,
        distinct_id: str,
        session_id: str,
        question: str,
        citations: int,
        latency: float,
    ):

        self._track(
            distinct_id,
            "question_asked",
            {
                "session_id": session_id,
                "question_length": len(question),
                "citations": citations,
                "latency_seconds": latency,
            },
        )

    def track_sessions_expired(self, removed: int):

        self._track(
            "session-sweeper",
            "sessions_expired",
            {"removed": removed},
        )

    def track_error(
        self,
        distinct_id: str,
        error_type: str,
        error_message: str,
        endpoint: str,
    ):

        self._track(
            distinct_id,
            "system_error",
            {
                "error_type": error_type,
                "error_message": error_message,
                "endpoint": endpoint,
            },
        )

    def shutdown(self):

        if not self._enabled or not self._client:
            return

        try:
            self._client.shutdown()
        except Exception as e:
            logger.warning("PostHog shutdown failed", extra={"error": str(e)})


# ==============================================================
# GLOBAL SINGLETON
# ==============================================================

posthog_client = PostHogClient()

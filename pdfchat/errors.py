# pdfchat/errors.py
"""
Error taxonomy shared by the core and the HTTP layer.

Every failure that can reach a caller is a DocumentQAError subclass with:
- kind:        short machine-readable identifier
- status_code: HTTP status the API maps it to
- retryable:   whether waiting and retrying can succeed
"""

from typing import Dict, Optional


class DocumentQAError(Exception):

    kind = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: Optional[str] = None):

        self.message = message or self.__class__.__doc__ or self.kind

        super().__init__(self.message)

    def to_dict(self) -> Dict:

        return {
            "detail": self.message,
            "error_type": self.kind,
            "retryable": self.retryable,
        }


class ConfigurationError(DocumentQAError):
    """Invalid or missing configuration."""

    kind = "configuration_error"


class InvalidArgument(DocumentQAError):
    """Malformed request."""

    kind = "invalid_argument"
    status_code = 400


class InvalidDocument(DocumentQAError):
    """Upload is not a readable PDF."""

    kind = "invalid_document"
    status_code = 400


class PayloadTooLarge(DocumentQAError):
    """Upload exceeds the configured size ceiling."""

    kind = "payload_too_large"
    status_code = 413


class NoExtractableText(DocumentQAError):
    """No extractable text found in PDF."""

    kind = "no_extractable_text"
    status_code = 422


class SessionNotFound(DocumentQAError):
    """Session not found. Upload the document again."""

    kind = "session_not_found"
    status_code = 404


# ============================================================
# INVARIANT VIOLATIONS (always a defect)
# ============================================================

class InvariantViolation(DocumentQAError):
    """Internal invariant violated."""

    kind = "invariant_violation"


class DimensionMismatch(InvariantViolation):
    """Embedding dimension does not match the index."""

    kind = "dimension_mismatch"


class EmbeddingCorrupt(InvariantViolation):
    """Embedding contains non-finite components."""

    kind = "embedding_corrupt"


# ============================================================
# UPSTREAM FAILURES (transient)
# ============================================================

class UpstreamUnavailable(DocumentQAError):
    """Upstream dependency unavailable."""

    kind = "upstream_unavailable"
    status_code = 503
    retryable = True


class EmbedderUnavailable(UpstreamUnavailable):
    """Embedding provider unavailable."""

    kind = "embedder_unavailable"


class CompletionUnavailable(UpstreamUnavailable):
    """Completion provider unavailable."""

    kind = "completion_unavailable"


class RateLimited(DocumentQAError):
    """Too many uploads. Try again later."""

    kind = "rate_limited"
    status_code = 429
    retryable = True

    def __init__(self, message: Optional[str] = None, retry_after: float = 0.0):

        super().__init__(message)

        self.retry_after = retry_after

    def to_dict(self) -> Dict:

        data = super().to_dict()
        data["retry_after"] = round(self.retry_after, 3)

        return data

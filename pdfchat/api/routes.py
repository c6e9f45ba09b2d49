import logging
import time

from fastapi import APIRouter, Depends, File, Request, UploadFile

from pdfchat.api.services import AppServices, get_services
from pdfchat.config import ALLOWED_CONTENT_TYPES, ALLOWED_FILE_EXTENSIONS
from pdfchat.errors import DocumentQAError, InvalidDocument, SessionNotFound
from pdfchat.models import (
    AskRequest,
    AskResponse,
    DeleteSessionResponse,
    ErrorResponse,
    HealthResponse,
    SessionInfo,
    UploadResponse,
)
from pdfchat.observability.metrics import metrics_tracker
from pdfchat.observability.posthog_client import posthog_client
from pdfchat.workflow.document_qa import answer_question


logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ============================================================
# HELPERS
# ============================================================

def client_identity(request: Request) -> str:

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def validate_upload_type(file: UploadFile):

    content_type = (file.content_type or "").split(";")[0].strip().lower()
    filename = (file.filename or "").lower()

    if content_type in ALLOWED_CONTENT_TYPES:
        return

    generic = content_type in ("", "application/octet-stream")

    if generic and filename.endswith(tuple(ALLOWED_FILE_EXTENSIONS)):
        return

    raise InvalidDocument(
        f"Only PDF files are accepted (got {content_type or 'unknown type'})"
    )


# ============================================================
# HEALTH
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check(request: Request):
    """Liveness only; the session count is added once startup has run."""

    services = getattr(request.app.state, "services", None)

    return HealthResponse(
        status="healthy",
        active_sessions=len(services.sessions) if services is not None else None,
    )


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

@router.post("/upload", response_model=UploadResponse, responses=ERROR_RESPONSES)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    services: AppServices = Depends(get_services),
):

    services.upload_limiter.hit(client_identity(request))

    validate_upload_type(file)

    # One byte past the ceiling is enough to reject
    raw = await file.read(services.settings.max_file_size_bytes + 1)

    start_time = time.time()

    try:

        result = await services.pipeline.ingest(raw, filename=file.filename)

    except DocumentQAError:

        metrics_tracker.increment("ingestions_failed")
        raise

    metrics_tracker.increment("documents_ingested")

    posthog_client.track_document_upload(
        distinct_id=request_id_of(request),
        session_id=result.session_id,
        chunks=result.chunks_created,
        latency=time.time() - start_time,
    )

    return UploadResponse(
        session_id=result.session_id,
        filename=result.filename,
        chunks_created=result.chunks_created,
    )


# ============================================================
# ASK QUESTION
# ============================================================

@router.post("/ask", response_model=AskResponse, responses=ERROR_RESPONSES)
@router.post("/chat", response_model=AskResponse, responses=ERROR_RESPONSES)
async def ask_question(
    payload: AskRequest,
    request: Request,
    services: AppServices = Depends(get_services),
):

    start_time = time.time()

    result = await answer_question(
        question=payload.question,
        session_id=payload.session_id,
        sessions=services.sessions,
        embedder=services.embedder,
        llm_client=services.llm_client,
        top_k=services.settings.top_k,
    )

    metrics_tracker.increment("questions_answered")

    posthog_client.track_question(
        distinct_id=request_id_of(request),
        session_id=payload.session_id,
        question=payload.question,
        citations=len(result["citations"]),
        latency=time.time() - start_time,
    )

    return AskResponse(**result)


# ============================================================
# SESSIONS
# ============================================================

@router.get("/sessions/{session_id}", response_model=SessionInfo, responses=ERROR_RESPONSES)
def get_session(session_id: str, services: AppServices = Depends(get_services)):

    session = services.sessions.get(session_id)

    if session is None:
        raise SessionNotFound()

    now = services.sessions.clock()

    return SessionInfo(
        session_id=session.session_id,
        filename=session.filename,
        chunks_count=len(session.chunks),
        pages_count=session.page_count,
        age_seconds=round(now - session.created_at, 3),
        idle_seconds=round(now - session.last_accessed, 3),
    )


@router.delete("/sessions/{session_id}", response_model=DeleteSessionResponse, responses=ERROR_RESPONSES)
def delete_session(session_id: str, services: AppServices = Depends(get_services)):

    if not services.sessions.delete(session_id):
        raise SessionNotFound()

    return DeleteSessionResponse(
        session_id=session_id,
        message="Deleted",
        success=True,
    )


# ============================================================
# METRICS ENDPOINT
# ============================================================

@router.get("/metrics")
def get_metrics():

    return metrics_tracker.get_metrics()

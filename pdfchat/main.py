# pdfchat/main.py
import os
import sys
import time
import uuid
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdfchat.api.routes import router
from pdfchat.api.services import build_services
from pdfchat.config import LOG_FILE, LOG_LEVEL, Settings
from pdfchat.errors import ConfigurationError, DocumentQAError, InvariantViolation, RateLimited
from pdfchat.observability.logger import setup_logging, get_logger
from pdfchat.observability.metrics import metrics_tracker
from pdfchat.observability.posthog_client import posthog_client

__version__ = "1.0.0"

# Initialize logging FIRST
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    embedder=None,
    llm_client=None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """
    Build the API.

    Settings are resolved at startup when not injected, so a missing
    OPENAI_API_KEY aborts startup with ConfigurationError.
    """

    app = FastAPI(
        title="PDF Chat API",
        description="Upload a PDF, ask questions, get answers with page citations",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Assign a request id, log the request and record latency metrics."""

        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        logger.info(
            "request_started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            }
        )

        start_time = time.time()

        try:

            response = await call_next(request)

        except Exception as e:

            metrics_tracker.record_failure()

            logger.error(
                "request_failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "latency_seconds": round(time.time() - start_time, 3),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )

            raise

        latency = time.time() - start_time

        if response.status_code < 400:
            metrics_tracker.record_success(latency)
        else:
            metrics_tracker.record_failure()

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_seconds": round(latency, 3),
            }
        )

        return response

    app.include_router(router)

    # ============================================================
    # LIFECYCLE
    # ============================================================

    @app.on_event("startup")
    async def startup_event():

        resolved = settings if settings is not None else Settings.from_env()

        services = build_services(
            resolved,
            embedder=embedder,
            llm_client=llm_client,
            clock=clock,
        )

        app.state.services = services
        services.sweeper.start()

        logger.info(
            "application_startup",
            extra={
                "version": __version__,
                "chunk_size": resolved.chunk_size,
                "chunk_overlap": resolved.chunk_overlap,
                "top_k": resolved.top_k,
                "session_idle_timeout_seconds": resolved.session_idle_timeout_seconds,
            },
        )

    @app.on_event("shutdown")
    async def shutdown_event():

        services = getattr(app.state, "services", None)

        if services is not None:
            await services.sweeper.stop()
            services.sessions.clear()
            await services.close()
            app.state.services = None

        posthog_client.shutdown()

        logger.info("application_shutdown")

    # ============================================================
    # ERROR HANDLING
    # ============================================================

    @app.exception_handler(DocumentQAError)
    async def document_qa_error_handler(request: Request, exc: DocumentQAError):

        request_id = getattr(request.state, "request_id", "unknown")

        log = logger.error if isinstance(exc, InvariantViolation) else logger.warning

        log(
            "request_rejected",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "error": exc.message,
                "error_type": exc.kind,
            },
        )

        if exc.status_code >= 500:
            posthog_client.track_error(
                distinct_id=request_id,
                error_type=exc.kind,
                error_message=exc.message,
                endpoint=request.url.path,
            )

        headers = None

        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(max(1, int(exc.retry_after + 0.999)))}

        return JSONResponse(
            status_code=exc.status_code,
            content={**exc.to_dict(), "request_id": request_id},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):

        request_id = getattr(request.state, "request_id", "unknown")

        messages = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        ]

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "; ".join(messages) or "Invalid request",
                "error_type": "invalid_argument",
                "retryable": False,
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):

        request_id = getattr(request.state, "request_id", "unknown")

        logger.error(
            "unhandled_exception",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
            exc_info=True,
        )

        posthog_client.track_error(
            distinct_id=request_id,
            error_type=type(exc).__name__,
            error_message=str(exc),
            endpoint=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An internal error occurred. Please try again.",
                "error_type": "internal_error",
                "retryable": False,
                "request_id": request_id,
            },
        )

    @app.get("/")
    async def root():

        return {
            "message": "PDF Chat API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


app = create_app()


def run():
    """Console entry point: validate configuration, then serve."""

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        logger.critical("startup_aborted", extra={"error": e.message})
        sys.exit(1)

    uvicorn.run(
        create_app(settings=settings),
        host=os.getenv("HOST", "0.0.0.0"),
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()

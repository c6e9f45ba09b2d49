# pdfchat/workflow/ingestion.py
"""
Upload → session pipeline.

validate → extract → chunk → embed (fan-out) → index → register

All or nothing: the session is registered only after every step has
succeeded, so queries never see a partially built document.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pdfchat.config import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    CHUNKS_PER_PAGE,
    MAX_FILE_SIZE_MB,
    validate_chunking,
)
from pdfchat.errors import NoExtractableText
from pdfchat.memory.chunker import chunk_text, citation_pages
from pdfchat.memory.index import FlatCosineIndex
from pdfchat.memory.loader import extract_pdf_text, validate_pdf_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:

    session_id: str
    chunks_created: int
    filename: Optional[str] = None


class IngestionPipeline:

    def __init__(
        self,
        sessions,
        embedder,
        max_file_size_bytes: int = MAX_FILE_SIZE_MB * 1024 * 1024,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        chunks_per_page: int = CHUNKS_PER_PAGE,
        extract_text: Callable[[bytes], str] = extract_pdf_text,
    ):

        validate_chunking(chunk_size, chunk_overlap)

        self._sessions = sessions
        self._embedder = embedder
        self._max_bytes = max_file_size_bytes
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._chunks_per_page = chunks_per_page
        self._extract_text = extract_text

    async def ingest(self, raw: bytes, filename: Optional[str] = None) -> IngestResult:

        start = time.time()

        validate_pdf_payload(raw, self._max_bytes)

        # pypdf is CPU-bound; keep the event loop free
        text = await asyncio.to_thread(self._extract_text, raw)

        if not text or not text.strip():
            logger.warning(
                "No extractable text",
                extra={"upload_filename": filename, "bytes": len(raw)},
            )
            raise NoExtractableText()

        chunks = chunk_text(text, self._chunk_size, self._chunk_overlap)

        vectors = await self._embedder.embed_batch([chunk.text for chunk in chunks])

        logger.info(
            "Chunk embeddings ready",
            extra={
                "embeddings": len(vectors),
                "dimension": int(vectors.shape[1]) if len(vectors) else 0,
            },
        )

        index = FlatCosineIndex.build(vectors)

        citations = citation_pages(chunks, self._chunks_per_page)

        session_id = self._sessions.create(
            chunks=chunks,
            index=index,
            citations=citations,
            filename=filename,
        )

        logger.info(
            "Document ingestion complete",
            extra={
                "session_id": session_id,
                "upload_filename": filename,
                "chunks": len(chunks),
                "pages_cited": citations[-1] if citations else 0,
                "latency_seconds": round(time.time() - start, 3),
            },
        )

        return IngestResult(
            session_id=session_id,
            chunks_created=len(chunks),
            filename=filename,
        )

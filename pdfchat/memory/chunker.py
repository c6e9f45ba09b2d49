# pdfchat/memory/chunker.py

import logging
from dataclasses import dataclass
from typing import List

from pdfchat.config import (
    CHUNK_SIZE,
    CHUNK_OVERLAP,
    CHUNKS_PER_PAGE,
    validate_chunking,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """A window of extracted text and its 0-based position in the document."""

    index: int
    text: str


def chunk_text(
    text: str,
    size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> List[Chunk]:
    """
    Split text into overlapping fixed-size character windows.

    Architecture contract preserved:
    loader → chunker → embedder → index

    Guarantees:
    • deterministic, order-preserving output
    • terminates for every accepted (size, overlap)
    • text is not normalized; chunk i starts at i * (size - overlap)
    • the final chunk may be shorter than size
    """

    validate_chunking(size, overlap)

    if not text:
        logger.warning("Chunking skipped: empty text")
        return []

    step = size - overlap

    chunks = [
        Chunk(index=i, text=text[offset:offset + size])
        for i, offset in enumerate(range(0, len(text), step))
    ]

    logger.info(
        "Chunking completed",
        extra={
            "total_characters": len(text),
            "chunk_size": size,
            "overlap": overlap,
            "chunks_created": len(chunks),
        },
    )

    return chunks


def page_for_chunk(chunk_index: int, chunks_per_page: int = CHUNKS_PER_PAGE) -> int:
    """1-based citation page for a chunk position."""

    return chunk_index // chunks_per_page + 1


def citation_pages(chunks: List[Chunk], chunks_per_page: int = CHUNKS_PER_PAGE) -> List[int]:

    return [page_for_chunk(chunk.index, chunks_per_page) for chunk in chunks]

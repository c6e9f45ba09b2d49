# pdfchat/memory/loader.py

"""
PDF validation and text extraction.

Architecture contract preserved:
loader → chunker → embedder → index

Works on in-memory bytes only; uploads are never written to disk.
"""

import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError, PyPdfError

from pdfchat.errors import InvalidDocument, PayloadTooLarge

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"

# Producers may put junk before the header; readers tolerate up to 1 KiB
PDF_HEADER_SEARCH_BYTES = 1024


# ============================================================
# SAFETY: PAYLOAD VALIDATION
# ============================================================

def validate_pdf_payload(raw: bytes, max_bytes: int) -> None:
    """
    Cheap checks that run before any parsing.

    Raises PayloadTooLarge for oversized input and InvalidDocument for
    anything that is empty or lacks a PDF header.
    """

    if not raw:
        raise InvalidDocument("Uploaded file is empty")

    if len(raw) > max_bytes:
        size_mb = len(raw) / (1024 * 1024)
        limit_mb = max_bytes / (1024 * 1024)
        raise PayloadTooLarge(
            f"File too large: {size_mb:.2f}MB exceeds {limit_mb:.0f}MB limit"
        )

    if PDF_MAGIC not in raw[:PDF_HEADER_SEARCH_BYTES]:
        raise InvalidDocument("Uploaded file is not a PDF")


# ============================================================
# PDF LOADER
# ============================================================

def extract_pdf_text(raw: bytes) -> str:

    try:

        reader = PdfReader(io.BytesIO(raw))

        if reader.is_encrypted:
            # Owner-password-only PDFs open with an empty user password
            if not reader.decrypt(""):
                raise InvalidDocument("PDF is password protected")

        parts = []

        for page in reader.pages:

            text = page.extract_text()

            if text:
                parts.append(text)

    except InvalidDocument:
        raise

    except (PdfReadError, PyPdfError, ValueError, KeyError, TypeError) as e:

        logger.warning(
            "PDF parsing failed",
            extra={"error": str(e), "error_type": type(e).__name__},
        )

        raise InvalidDocument(f"Could not read PDF: {e}")

    text = "\n".join(parts)

    logger.info(
        "PDF text extracted",
        extra={"pages": len(parts), "characters": len(text)},
    )

    return text

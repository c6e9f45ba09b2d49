# tests/test_loader.py
import pytest

from pdfchat.errors import InvalidDocument, PayloadTooLarge
from pdfchat.memory.loader import extract_pdf_text, validate_pdf_payload

from qa_doubles import make_pdf, page_text


class TestValidatePayload:

    def test_empty_payload(self):
        with pytest.raises(InvalidDocument):
            validate_pdf_payload(b"", max_bytes=1024)

    def test_oversized_payload(self):
        with pytest.raises(PayloadTooLarge) as exc_info:
            validate_pdf_payload(b"%PDF-" + b"0" * 2048, max_bytes=1024)

        assert exc_info.value.status_code == 413

    def test_size_checked_before_header(self):
        with pytest.raises(PayloadTooLarge):
            validate_pdf_payload(b"not a pdf at all" * 100, max_bytes=16)

    def test_missing_header(self):
        with pytest.raises(InvalidDocument, match="not a PDF"):
            validate_pdf_payload(b"plain text document", max_bytes=1024)

    def test_header_after_leading_junk(self):
        validate_pdf_payload(b"\x00\x00junk" + make_pdf(["hi"]), max_bytes=10_000)

    def test_payload_at_limit_is_accepted(self):
        raw = b"%PDF-" + b"0" * 1019

        validate_pdf_payload(raw, max_bytes=len(raw))


class TestExtractText:

    def test_extracts_text_of_every_page_in_order(self):
        raw = make_pdf([page_text(1, 120), page_text(2, 120), page_text(3, 120)])

        text = extract_pdf_text(raw)

        first = text.index("Page 1 discusses")
        second = text.index("Page 2 discusses")
        third = text.index("Page 3 discusses")
        assert first < second < third

    def test_page_without_text_is_skipped(self):
        raw = make_pdf(["", "Only this page has words"])

        text = extract_pdf_text(raw)

        assert text.strip() == "Only this page has words"

    def test_unparseable_pdf(self):
        with pytest.raises(InvalidDocument):
            extract_pdf_text(b"%PDF-1.4\nthis is not really a pdf\n")

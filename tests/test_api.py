# tests/test_api.py
import pytest
from fastapi.testclient import TestClient

from pdfchat.errors import ConfigurationError
from pdfchat.main import create_app

from qa_doubles import make_pdf


def services_of(client):
    return client.app.state.services


class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "PDF Chat API"

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "active_sessions": 0}
        assert "X-Request-ID" in response.headers


class TestUpload:

    def test_upload_pdf(self, client, sample_pdf_content):
        response = client.post(
            "/upload",
            files={"file": ("test_document.pdf", sample_pdf_content, "application/pdf")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"].startswith("sess_")
        assert data["filename"] == "test_document.pdf"
        assert data["chunks_created"] >= 6
        assert data["message"] == "PDF uploaded and indexed"

    def test_octet_stream_with_pdf_name_accepted(self, client, sample_pdf_content):
        response = client.post(
            "/upload",
            files={"file": ("scan.PDF", sample_pdf_content, "application/octet-stream")}
        )

        assert response.status_code == 200

    def test_upload_non_pdf(self, client):
        response = client.post(
            "/upload",
            files={"file": ("test.txt", b"This is a text file", "text/plain")}
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_document"

    def test_pdf_content_type_with_wrong_bytes(self, client):
        response = client.post(
            "/upload",
            files={"file": ("fake.pdf", b"definitely not a pdf", "application/pdf")}
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_document"

    def test_upload_empty_file(self, client):
        response = client.post(
            "/upload",
            files={"file": ("empty.pdf", b"", "application/pdf")}
        )

        assert response.status_code == 400

    def test_upload_too_large(self, make_client):
        client = make_client(max_file_size_mb=1)
        payload = b"%PDF-1.4\n" + b"0" * (2 * 1024 * 1024)

        response = client.post(
            "/upload",
            files={"file": ("big.pdf", payload, "application/pdf")}
        )

        assert response.status_code == 413
        assert response.json()["error_type"] == "payload_too_large"
        assert len(services_of(client).sessions) == 0

    def test_upload_without_text(self, client):
        response = client.post(
            "/upload",
            files={"file": ("blank.pdf", make_pdf(["", ""]), "application/pdf")}
        )

        assert response.status_code == 422
        assert response.json()["error_type"] == "no_extractable_text"

    def test_upload_missing_file(self, client):
        response = client.post("/upload")

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_argument"

    def test_sixth_upload_in_window_is_throttled(self, make_client, sample_pdf_content):
        client = make_client(upload_rate_limit=5)
        files = {"file": ("doc.pdf", sample_pdf_content, "application/pdf")}

        for _ in range(5):
            assert client.post("/upload", files=files).status_code == 200

        response = client.post("/upload", files=files)

        assert response.status_code == 429
        assert response.json()["retryable"] is True
        assert int(response.headers["Retry-After"]) > 0
        assert len(services_of(client).sessions) == 5


class TestChat:

    def test_chat_returns_answer_with_citations(self, client, upload_sample_document, llm_client):
        session_id = upload_sample_document()
        session = services_of(client).sessions.get(session_id)

        response = client.post(
            "/chat",
            json={"session_id": session_id, "question": session.chunks[4].text}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == session_id
        assert data["text"] == llm_client.answer
        assert data["citations"][0] == 3
        assert len(data["citations"]) == 3

    def test_message_field_accepted(self, client, upload_sample_document):
        session_id = upload_sample_document()

        response = client.post(
            "/chat",
            json={"session_id": session_id, "message": "What is on page 2?"}
        )

        assert response.status_code == 200

    def test_ask_alias(self, client, upload_sample_document):
        session_id = upload_sample_document()

        response = client.post(
            "/ask",
            json={"session_id": session_id, "question": "Summarize the document."}
        )

        assert response.status_code == 200
        assert response.json()["citations"]

    def test_unknown_session(self, client, embedding_provider, llm_client):
        response = client.post(
            "/chat",
            json={"session_id": "sess_nonexistent", "question": "What is this about?"}
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "session_not_found"
        assert embedding_provider.calls == 0
        assert llm_client.calls == 0

    @pytest.mark.parametrize("payload", [
        {"question": "What is this about?"},
        {"session_id": "sess_abc"},
        {"session_id": "", "question": "What?"},
        {"session_id": "sess_abc", "question": ""},
        {"session_id": "sess_abc", "question": "   "},
        {"session_id": "sess_abc", "question": "x" * 4001},
    ])
    def test_invalid_request_body(self, client, llm_client, payload):
        response = client.post("/chat", json=payload)

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_argument"
        assert llm_client.calls == 0

    def test_completion_failure_is_retryable(self, client, upload_sample_document, llm_client):
        session_id = upload_sample_document()
        llm_client.fail = True

        response = client.post(
            "/chat",
            json={"session_id": session_id, "question": "What is this about?"}
        )

        assert response.status_code == 503
        assert response.json()["error_type"] == "completion_unavailable"
        assert response.json()["retryable"] is True

    def test_expired_session_is_gone(self, client, upload_sample_document, clock):
        session_id = upload_sample_document()

        clock.advance(1801)
        removed = services_of(client).sweeper.sweep_once()

        response = client.post(
            "/chat",
            json={"session_id": session_id, "question": "Still there?"}
        )

        assert removed == 1
        assert response.status_code == 404
        assert client.get("/metrics").json()["sessions_expired"] == 1


class TestSessions:

    def test_session_info(self, client, upload_sample_document, clock):
        session_id = upload_sample_document()
        clock.advance(10)

        response = client.get(f"/sessions/{session_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "test_document.pdf"
        assert data["pages_count"] == 4
        assert data["idle_seconds"] == 10

    def test_delete_session(self, client, upload_sample_document):
        session_id = upload_sample_document()

        response = client.delete(f"/sessions/{session_id}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(f"/sessions/{session_id}").status_code == 404
        assert client.delete(f"/sessions/{session_id}").status_code == 404


class TestMetrics:

    def test_metrics_endpoint(self, client, upload_sample_document):
        upload_sample_document()
        client.get("/health")

        data = client.get("/metrics").json()

        assert data["documents_ingested"] == 1
        assert data["successful_requests"] == 2
        assert "avg_latency" in data

    def test_failed_upload_counted(self, client):
        client.post("/upload", files={"file": ("x.pdf", b"nope", "application/pdf")})

        data = client.get("/metrics").json()

        assert data["ingestions_failed"] == 1
        assert data["failed_requests"] == 1


def test_startup_requires_api_key(monkeypatch, embedder, llm_client):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    app = create_app(embedder=embedder, llm_client=llm_client)

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_health_before_startup(embedder, llm_client):
    app = create_app(embedder=embedder, llm_client=llm_client)

    # No context manager, so startup never runs
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["active_sessions"] is None


def test_long_unknown_session_id_is_not_found(client, llm_client):
    response = client.post(
        "/chat",
        json={"session_id": "sess_" + "f" * 200, "question": "What is this about?"}
    )

    assert response.status_code == 404
    assert response.json()["error_type"] == "session_not_found"
    assert llm_client.calls == 0

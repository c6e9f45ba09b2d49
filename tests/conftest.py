# tests/conftest.py
import os
import sys

# Configure before the application is imported
os.environ["LOG_FILE"] = ""
os.environ.pop("POSTHOG_API_KEY", None)

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient

from pdfchat.config import Settings
from pdfchat.main import create_app
from pdfchat.memory.embedder import Embedder
from pdfchat.observability.metrics import metrics_tracker

from qa_doubles import FakeClock, FakeLLMClient, HashEmbeddingProvider, make_pdf, page_text


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-wide; keep tests independent."""
    metrics_tracker.reset()
    yield
    metrics_tracker.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def embedding_provider():
    return HashEmbeddingProvider()


@pytest.fixture
def embedder(embedding_provider):
    return Embedder(provider_factory=lambda: embedding_provider, timeout_seconds=5)


@pytest.fixture
def llm_client():
    return FakeLLMClient()


@pytest.fixture
def make_settings():
    """
    Build Settings with a dummy key and a generous upload limit.

    Usage:
        settings = make_settings(upload_rate_limit=5)
    """

    def _make(**overrides):
        values = {"openai_api_key": "sk-test-key", "upload_rate_limit": 100}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client(make_settings, embedder, llm_client, clock):
    """
    Start the app with test doubles injected and return a TestClient.

    Startup and shutdown handlers run, so the session sweeper is live.
    """

    clients = []

    def _make(**overrides):
        app = create_app(
            settings=make_settings(**overrides),
            embedder=embedder,
            llm_client=llm_client,
            clock=clock,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def sample_pdf_content():
    """Three-page PDF with about 2400 characters of text."""
    return make_pdf([page_text(1), page_text(2), page_text(3)])


@pytest.fixture
def upload_sample_document(client, sample_pdf_content):
    """
    Upload the sample PDF and return its session id.
    """
    def _upload():
        response = client.post(
            "/upload",
            files={"file": ("test_document.pdf", sample_pdf_content, "application/pdf")}
        )
        assert response.status_code == 200, f"Upload failed: {response.json()}"
        return response.json()["session_id"]

    return _upload

# tests/test_config.py
import pytest

from pdfchat.config import CHUNK_OVERLAP, CHUNK_SIZE, TOP_K, Settings
from pdfchat.errors import ConfigurationError


def test_defaults_from_minimal_environment():
    settings = Settings.from_env({"OPENAI_API_KEY": "sk-abc"})

    assert settings.chunk_size == CHUNK_SIZE == 512
    assert settings.chunk_overlap == CHUNK_OVERLAP == 128
    assert settings.top_k == TOP_K == 3
    assert settings.max_file_size_bytes == 50 * 1024 * 1024
    assert settings.session_idle_timeout_seconds == 1800


def test_environment_overrides():
    settings = Settings.from_env({
        "OPENAI_API_KEY": "sk-abc",
        "PORT": "9000",
        "MAX_FILE_SIZE_MB": "5",
        "TOP_K": "5",
        "LLM_TIMEOUT_SECONDS": "2.5",
        "CHUNK_OVERLAP": "0",
    })

    assert settings.port == 9000
    assert settings.max_file_size_bytes == 5 * 1024 * 1024
    assert settings.top_k == 5
    assert settings.llm_timeout_seconds == 2.5
    assert settings.chunk_overlap == 0


@pytest.mark.parametrize("key", ["", "   "])
def test_missing_api_key(key):
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        Settings.from_env({"OPENAI_API_KEY": key})


def test_absent_api_key():
    with pytest.raises(ConfigurationError):
        Settings.from_env({})


@pytest.mark.parametrize("env", [
    {"PORT": "eighty"},
    {"TOP_K": "0"},
    {"UPLOAD_RATE_LIMIT": "-3"},
    {"EMBED_TIMEOUT_SECONDS": "0"},
    {"CHUNK_SIZE": "100", "CHUNK_OVERLAP": "100"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigurationError):
        Settings.from_env({"OPENAI_API_KEY": "sk-abc", **env})


def test_settings_are_frozen():
    settings = Settings(openai_api_key="sk-abc")

    with pytest.raises(AttributeError):
        settings.top_k = 10

"""Pytest configuration and fixtures for KB Syncer tests."""

import json
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import patch

import httpx
import pytest

from config.settings import ConfluenceConfig, refresh_settings
from core.summarizer import LLMResponse


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset settings cache before each test."""
    refresh_settings()
    yield
    refresh_settings()


@pytest.fixture
def mock_env_vars():
    """Provide mock environment variables for testing."""
    env_vars = {
        "ANTHROPIC_API_KEY": "test_anthropic_key_12345",
        "OPENAI_API_KEY": "test_openai_key_12345",
        "CONFLUENCE_BASE_URL": "https://example.atlassian.net/",
        "CONFLUENCE_USERNAME": "user@example.com",
        "CONFLUENCE_API_TOKEN": "  token-12345  ",
        "API_TIMEOUT": "60",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        refresh_settings()
        yield env_vars


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for file tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def kb_root(temp_dir):
    """Create an empty knowledge base root."""
    root = temp_dir / "skills"
    root.mkdir()
    return root


class FakeSummarizer:
    """Summarizer double that records prompts and replies with fixed text."""

    def __init__(self, reply: str = "Deployment runbooks and on-call procedures", success: bool = True):
        self.reply = reply
        self.success = success
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def summarize(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        if not self.success:
            return LLMResponse(content="", model="fake", duration_ms=1, success=False, error="boom")
        return LLMResponse(content=self.reply, model="fake", duration_ms=1)


@pytest.fixture
def fake_summarizer():
    """Provide a summarizer that counts calls."""
    return FakeSummarizer()


@pytest.fixture
def failing_summarizer():
    """Provide a summarizer whose calls always fail."""
    return FakeSummarizer(success=False)


@pytest.fixture
def confluence_config():
    """Provide a complete Confluence configuration."""
    return ConfluenceConfig(
        base_url="https://example.atlassian.net",
        username="user@example.com",
        api_token="token-12345",
    )


@pytest.fixture
def write_manifest(kb_root):
    """Provide a helper writing raw manifest documents under kb_root."""

    def write(kb_name: str, data: dict) -> Path:
        kb_dir = kb_root / kb_name
        kb_dir.mkdir(parents=True, exist_ok=True)
        path = kb_dir / "manifest.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return write


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def paths(self, prefix: Optional[str] = None) -> list[str]:
        paths = [r.url.path for r in self.requests]
        if prefix is None:
            return paths
        return [p for p in paths if p.startswith(prefix)]


@pytest.fixture
def mock_transport():
    """Provide a factory for recording httpx transports."""
    return RecordingTransport

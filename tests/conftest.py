"""
Pytest configuration and fixtures

This module provides shared fixtures and configuration for all tests.
"""

import os

# Qt must not need a display in CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from ai_paste.ocr import OcrProviderConfig, ProviderType


class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside ``async with``"""

    def __init__(self, status=200, json_data=None, text="", json_error=None):
        self.status = status
        self._json_data = json_data
        self._text = text
        self._json_error = json_error

    async def text(self):
        return self._text

    async def json(self, content_type="application/json"):
        if self._json_error is not None:
            raise self._json_error
        return self._json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records every POST and replies with a canned response or error"""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def make_session():
    """Factory for fake aiohttp sessions"""
    def _make(status=200, json_data=None, text="", error=None, json_error=None):
        return FakeSession(FakeResponse(status, json_data, text, json_error), error=error)
    return _make


@pytest.fixture
def builtin_config():
    return OcrProviderConfig(
        id="builtin-test",
        name="Default (Test)",
        type=ProviderType.SILICONFLOW,
        api_key="sk-builtin-secret-123",
        base_url="https://builtin.example/v1/chat/completions",
        model="deepseek-ai/DeepSeek-OCR",
        is_builtin=True,
    )


@pytest.fixture
def custom_config():
    return OcrProviderConfig(
        id="custom-1",
        name="My Endpoint",
        type=ProviderType.CUSTOM,
        api_key="sk-user-key",
        base_url="https://custom.example/v1/chat/completions",
        model="gpt-4o-mini",
    )


@pytest.fixture
def sample_png():
    """Smallest valid PNG header bytes; providers never decode the image"""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def clean_clipboard(qapp):
    """Reset clipboard state around a test to avoid interference"""
    from ai_paste.clipboard import ClipboardManager
    ClipboardManager.copy_text("")
    yield
    ClipboardManager.copy_text("")


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: marks OCR provider tests (HTTP is faked)"
    )
    config.addinivalue_line(
        "markers", "clipboard: marks clipboard-related tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names"""
    for item in items:
        nodeid = item.nodeid.lower()

        if "test_ocr" in nodeid:
            item.add_marker(pytest.mark.network)

        if "clipboard" in nodeid:
            item.add_marker(pytest.mark.clipboard)

        if "test_app" in nodeid:
            item.add_marker(pytest.mark.slow)

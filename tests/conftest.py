"""Shared test fixtures for tactics-analyst."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tactics_analyst.config import AppConfig
from tactics_analyst.models.files import GenerationResult, RemoteFileHandle, StoredObjectInfo
from tactics_analyst.models.tactics import REPORT_TOOL_NAME

FILE_ID = "files/abc123"
FILE_URI = "https://generativelanguage.googleapis.com/v1beta/files/abc123"

VALID_REPORT_ARGS: dict = {
    "overallSummary": "Home side pressed high and won the ball back quickly in midfield.",
    "formationAnalysis": "4-3-3 out of possession shifting to a 3-2-5 in build-up.",
    "keyTacticalMoments": [
        {"timestamp": "00:12", "description": "Coordinated press forces a turnover."},
        {"timestamp": "00:41", "description": "Overload on the left creates a cutback."},
        {"description": "Deep block absorbs late pressure."},
    ],
}


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable."""
    import importlib
    import pkgutil

    import tactics_analyst.tools as tools_pkg

    modules = [
        importlib.import_module(info.name)
        for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + ".")
    ]

    for mod in modules:
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """Ensure tests never hit real Gemini API."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")


@pytest.fixture(autouse=True)
def _disable_tracing(monkeypatch):
    """Disable MLflow tracing in all tests to avoid real tracking-server calls."""
    monkeypatch.setenv("TACTICS_TRACING_ENABLED", "false")


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import tactics_analyst.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def cfg() -> AppConfig:
    return AppConfig(gemini_api_key="test-key-not-real", storage_bucket="test-bucket")


def make_handle(state: str = "PROCESSING", **overrides: Any) -> RemoteFileHandle:
    data = {
        "identifier": FILE_ID,
        "state": state,
        "uri": FILE_URI,
        "mime_type": "video/mp4",
        "display_name": "derby.mp4",
    }
    data.update(overrides)
    return RemoteFileHandle(**data)


@pytest.fixture()
def handle_factory():
    """Build RemoteFileHandle instances for a fixed test file."""
    return make_handle


@pytest.fixture()
def report_args() -> dict:
    """A fresh copy of a schema-valid saveTacticalReport payload."""
    import copy

    return copy.deepcopy(VALID_REPORT_ARGS)


@pytest.fixture()
def fake_provider(report_args):
    """AsyncMock-backed analysis provider: upload → ACTIVE on first check → valid report."""
    provider = MagicMock()
    provider.upload_file = AsyncMock(return_value=make_handle("PROCESSING"))
    provider.get_file = AsyncMock(return_value=make_handle("ACTIVE"))
    provider.delete_file = AsyncMock(return_value=None)
    provider.generate = AsyncMock(
        return_value=GenerationResult(tool_name=REPORT_TOOL_NAME, tool_args=report_args),
    )
    provider.aclose = AsyncMock()
    return provider


@pytest.fixture()
def fake_storage():
    """AsyncMock-backed object storage holding one 5 MiB clip."""
    storage = MagicMock()
    storage.get_metadata = AsyncMock(
        return_value=StoredObjectInfo(size_bytes=5 * 1024 * 1024, content_type="video/mp4"),
    )
    storage.download_bytes = AsyncMock(return_value=b"\x00" * 1024)
    storage.signed_read_url = AsyncMock(
        return_value="https://storage.googleapis.com/test-bucket/clip.mp4?X-Goog-Signature=read",
    )
    storage.signed_write_url = AsyncMock(
        return_value="https://storage.googleapis.com/test-bucket/clip.mp4?X-Goog-Signature=write",
    )
    storage.list_files = AsyncMock(return_value=["clip.mp4", "derby.mp4"])
    storage.close = MagicMock()
    return storage


@pytest.fixture()
def mock_sleep():
    """Replace asyncio.sleep in the poller so waits are instant and recorded."""
    with patch("tactics_analyst.analysis.polling.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep

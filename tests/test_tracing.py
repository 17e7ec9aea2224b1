"""Tests for the optional MLflow tracing of the analysis pipeline."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import tactics_analyst.tracing as mod
from tactics_analyst.analysis.orchestrator import analyze_tactics
from tactics_analyst.config import AppConfig
from tactics_analyst.errors import AnalysisError, ProcessingTimeout
from tactics_analyst.models.tactics import AnalysisRequest
from tactics_analyst.services import Services


def _tracing_config(**overrides) -> AppConfig:
    data = {
        "gemini_api_key": "test-key-not-real",
        "tracing_enabled": True,
        "mlflow_tracking_uri": "http://127.0.0.1:5001",
        "mlflow_experiment_name": "tactics-analyst",
    }
    data.update(overrides)
    return AppConfig(**data)


@pytest.fixture()
def mlflow_installed(monkeypatch):
    """Pretend mlflow-tracing is importable and hand back the stand-in module."""
    fake = MagicMock()
    # A truthy __exit__ would swallow exceptions raised inside spans.
    fake.start_span.return_value.__exit__.return_value = False
    monkeypatch.setattr(mod, "_HAS_MLFLOW", True)
    monkeypatch.setattr(mod, "mlflow", fake, raising=False)
    monkeypatch.setattr(mod, "_active", False)
    return fake


@pytest.fixture()
def tracing_active(mlflow_installed, monkeypatch):
    monkeypatch.setattr(mod, "_active", True)
    return mlflow_installed


def _live_span(fake):
    return fake.start_span.return_value.__enter__.return_value


class TestIsEnabled:
    def test_true_when_installed_and_enabled(self, mlflow_installed):
        assert mod.is_enabled(_tracing_config()) is True

    def test_false_when_not_installed(self, monkeypatch):
        monkeypatch.setattr(mod, "_HAS_MLFLOW", False)

        assert mod.is_enabled(_tracing_config()) is False

    def test_false_when_config_disabled(self, mlflow_installed):
        assert mod.is_enabled(_tracing_config(tracing_enabled=False)) is False


class TestSetupAndShutdown:
    def test_setup_uses_the_given_config(self, mlflow_installed):
        mod.setup(_tracing_config(mlflow_experiment_name="derby-nights"))

        mlflow_installed.set_tracking_uri.assert_called_once_with("http://127.0.0.1:5001")
        mlflow_installed.set_experiment.assert_called_once_with("derby-nights")
        mlflow_installed.gemini.autolog.assert_called_once()
        assert mod.is_active() is True

    def test_setup_failure_leaves_tracing_off(self, mlflow_installed):
        mlflow_installed.set_tracking_uri.side_effect = RuntimeError("tracking server down")

        mod.setup(_tracing_config())

        assert mod.is_active() is False

    def test_setup_noop_when_disabled(self, mlflow_installed):
        mod.setup(_tracing_config(tracing_enabled=False))

        mlflow_installed.set_tracking_uri.assert_not_called()
        assert mod.is_active() is False

    def test_shutdown_flushes_and_deactivates(self, tracing_active):
        mod.shutdown()

        tracing_active.flush_trace_async_logging.assert_called_once()
        assert mod.is_active() is False

    def test_shutdown_noop_when_inactive(self, mlflow_installed):
        mod.shutdown()

        mlflow_installed.flush_trace_async_logging.assert_not_called()


class TestSpans:
    def test_span_is_noop_when_inactive(self, mlflow_installed):
        with mod.span("upload", file="files/abc123") as live:
            assert live is None

        mlflow_installed.start_span.assert_not_called()

    def test_span_namespaces_attributes(self, tracing_active):
        with mod.span("upload", span_type="TOOL", source="preset", file=None) as live:
            assert live is _live_span(tracing_active)

        tracing_active.start_span.assert_called_once_with(
            name="upload", span_type="TOOL", attributes={"tactics.source": "preset"},
        )

    def test_exceptions_leave_the_span(self, tracing_active):
        with pytest.raises(ValueError):
            with mod.span("validate_report"):
                raise ValueError("bad payload")

    def test_tag_ignores_missing_span(self):
        mod.tag(None, file="files/abc123")

    def test_record_failure(self):
        live = MagicMock()
        error = ProcessingTimeout("File processing timed out after 300 seconds.", identifier="files/abc123")
        error.stage = "POLLING"

        mod.record_failure(live, error)

        live.set_attributes.assert_called_once_with({
            "tactics.error_kind": "PROCESSING_TIMEOUT",
            "tactics.http_status": 504,
            "tactics.failed_stage": "POLLING",
            "tactics.file": "files/abc123",
        })


class TestPipelineSpans:
    """The orchestrator opens one root span and one span per stage."""

    async def test_stage_spans_on_success(self, tracing_active, fake_storage, fake_provider, cfg, mock_sleep):
        await analyze_tactics(
            AnalysisRequest.parse({"filename": "clip.mp4"}), storage=fake_storage, provider=fake_provider, cfg=cfg,
        )

        names = [call.kwargs["name"] for call in tracing_active.start_span.call_args_list]
        assert names == ["analyze_tactics", "upload", "wait_for_active", "request_report", "validate_report"]
        assert tracing_active.start_span.call_args_list[0].kwargs["attributes"] == {"tactics.source": "stored"}
        _live_span(tracing_active).set_attributes.assert_any_call({"tactics.file": "files/abc123"})

    async def test_failure_is_tagged_on_root(
        self, tracing_active, fake_storage, fake_provider, handle_factory, cfg, mock_sleep,
    ):
        fake_provider.get_file.return_value = handle_factory("PROCESSING")

        with pytest.raises(AnalysisError):
            await analyze_tactics(
                AnalysisRequest.parse({"filename": "clip.mp4"}),
                storage=fake_storage,
                provider=fake_provider,
                cfg=cfg,
            )

        names = [call.kwargs["name"] for call in tracing_active.start_span.call_args_list]
        assert "request_report" not in names
        _live_span(tracing_active).set_attributes.assert_called_with({
            "tactics.error_kind": "PROCESSING_TIMEOUT",
            "tactics.http_status": 504,
            "tactics.failed_stage": "POLLING",
            "tactics.file": "files/abc123",
        })
        fake_provider.delete_file.assert_awaited_once_with("files/abc123")


class TestToolSpans:
    async def test_storage_tool_opens_span(self, tracing_active, cfg, fake_storage, fake_provider):
        import tactics_analyst.tools.storage as storage_mod

        ctx = MagicMock()
        ctx.request_context.lifespan_context = {
            "services": Services(config=cfg, storage=fake_storage, provider=fake_provider),
        }
        signed_url = getattr(storage_mod.storage_signed_url, "fn", storage_mod.storage_signed_url)

        result = await signed_url(ctx, "clip.mp4")

        assert result["url"].endswith("X-Goog-Signature=read")
        tracing_active.start_span.assert_called_once_with(
            name="storage_signed_url", span_type="TOOL", attributes={"tactics.filename": "clip.mp4"},
        )

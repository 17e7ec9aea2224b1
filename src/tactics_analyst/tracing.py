"""Optional MLflow tracing for the analysis pipeline.

``setup(cfg)`` points MLflow at the configured tracking server and turns on
Gemini autologging, so each ``generate_content`` call becomes a
``CHAT_MODEL`` span. The orchestrator opens one ``analyze_tactics`` span per
request with a child span per pipeline stage. Attributes are namespaced
under ``tactics.``; the remote file identifier is added as soon as the
upload returns, and a failed request is tagged with its error kind and HTTP
status.

Guarded import: without ``mlflow-tracing`` installed, or before ``setup``
has succeeded, every helper here is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .config import AppConfig
from .errors import AnalysisError

logger = logging.getLogger(__name__)

try:
    import mlflow
    import mlflow.gemini

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False

_active = False


def is_enabled(cfg: AppConfig) -> bool:
    """Return True when mlflow-tracing is installed and *cfg* asks for tracing."""
    return _HAS_MLFLOW and cfg.tracing_enabled


def is_active() -> bool:
    return _active


def setup(cfg: AppConfig) -> None:
    """Configure MLflow from *cfg* and enable Gemini autologging.

    Failures are logged and leave tracing off; startup continues.
    """
    global _active
    if not is_enabled(cfg):
        return
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
        mlflow.gemini.autolog()
    except Exception:
        logger.warning("MLflow tracing setup failed, continuing without tracing", exc_info=True)
        return
    _active = True
    logger.info(
        "MLflow tracing enabled (uri=%s, experiment=%s)",
        cfg.mlflow_tracking_uri, cfg.mlflow_experiment_name,
    )


def shutdown() -> None:
    """Flush pending traces and switch span helpers back to no-ops."""
    global _active
    if not _active:
        return
    _active = False
    try:
        mlflow.flush_trace_async_logging()
        logger.info("MLflow traces flushed")
    except Exception:
        logger.warning("MLflow trace flush failed", exc_info=True)


def _attributes(values: dict[str, Any]) -> dict[str, Any]:
    return {f"tactics.{key}": value for key, value in values.items() if value is not None}


@contextmanager
def span(name: str, *, span_type: str = "CHAIN", **attributes: Any) -> Iterator[Any]:
    """Open a span under the current trace; yields None when tracing is off.

    An exception leaving the block is recorded on the span by MLflow and
    re-raised unchanged.
    """
    if not _active:
        yield None
        return
    with mlflow.start_span(name=name, span_type=span_type, attributes=_attributes(attributes)) as live:
        yield live


def tag(live: Any, **attributes: Any) -> None:
    """Add ``tactics.*`` attributes to a span opened by :func:`span`."""
    if live is None:
        return
    live.set_attributes(_attributes(attributes))


def record_failure(live: Any, error: AnalysisError) -> None:
    """Tag *live* with the classified failure."""
    tag(
        live,
        error_kind=error.kind.value,
        http_status=error.http_status,
        failed_stage=error.stage,
        file=error.identifier,
    )

"""Tactical analysis pipeline: upload, poll, generate, validate, always clean up.

Per request::

    START → UPLOADING → POLLING → GENERATING → VALIDATING → DONE | FAILED

with the remote file deleted exactly once on the way out of any stage.
"""

from __future__ import annotations

import json
import logging
from enum import Enum

from .. import tracing
from ..config import AppConfig, get_config
from ..errors import (
    AnalysisError,
    ErrorKind,
    ExtractionFailure,
    SchemaValidationFailure,
    classify_error,
    to_error_response,
)
from ..models.tactics import AnalysisRequest, TacticalReport
from .cleanup import RemoteFileScope
from .polling import wait_for_active
from .ports import AnalysisProvider, ObjectStorage
from .requester import request_report
from .upload import upload_video
from .validation import validate_report

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    START = "START"
    UPLOADING = "UPLOADING"
    POLLING = "POLLING"
    GENERATING = "GENERATING"
    VALIDATING = "VALIDATING"
    DONE = "DONE"
    FAILED = "FAILED"


def _log_failure(error: AnalysisError) -> None:
    """Log a classified failure with enough context to reproduce it."""
    logger.error(
        "Tactical analysis failed [kind=%s stage=%s file=%s]: %s",
        error.kind.value, error.stage, error.identifier, error.message,
        exc_info=error.kind is ErrorKind.INTERNAL,
    )
    if isinstance(error, SchemaValidationFailure):
        logger.error(
            "Violations: %s; received args: %s",
            error.violations, json.dumps(error.payload, indent=2, default=str),
        )
    elif isinstance(error, ExtractionFailure):
        logger.error("Model text response: %s", error.raw_text)


async def analyze_tactics(
    request: AnalysisRequest,
    *,
    storage: ObjectStorage,
    provider: AnalysisProvider,
    cfg: AppConfig | None = None,
) -> TacticalReport:
    """Run the full pipeline for one request.

    Raises:
        AnalysisError: Classified failure, raised only after cleanup finished.
    """
    cfg = cfg or get_config()
    stage = Stage.START
    source = "stored" if request.stored_filename else "preset"
    with tracing.span("analyze_tactics", source=source) as root:
        async with RemoteFileScope(provider) as scope:
            try:
                stage = Stage.UPLOADING
                with tracing.span("upload", span_type="TOOL", source=source):
                    handle = await upload_video(request, storage=storage, provider=provider, cfg=cfg)
                scope.track(handle.identifier)
                tracing.tag(root, file=handle.identifier)
                logger.info("Upload accepted: %s, initial state: %s", handle.identifier, handle.state)

                stage = Stage.POLLING
                with tracing.span("wait_for_active", file=handle.identifier):
                    handle = await wait_for_active(
                        provider,
                        handle,
                        interval=cfg.poll_interval_seconds,
                        timeout=cfg.poll_timeout_seconds,
                    )

                stage = Stage.GENERATING
                with tracing.span("request_report", span_type="LLM", file=handle.identifier):
                    payload = await request_report(provider, handle)

                stage = Stage.VALIDATING
                with tracing.span("validate_report", span_type="PARSER"):
                    report = validate_report(payload)
            except Exception as exc:
                error = classify_error(exc)
                error.stage = error.stage or stage.value
                error.identifier = error.identifier or scope.identifier
                _log_failure(error)
                tracing.record_failure(root, error)
                logger.debug("Stage %s → %s", stage.value, Stage.FAILED.value)
                if error is exc:
                    raise
                raise error from exc

    logger.info("Report generated and validated (%s → %s)", stage.value, Stage.DONE.value)
    return report


async def analyze_to_response(
    data: object,
    *,
    storage: ObjectStorage,
    provider: AnalysisProvider,
    cfg: AppConfig | None = None,
) -> tuple[int, dict]:
    """Boundary wrapper: raw request body in, ``(status, json_body)`` out."""
    try:
        request = AnalysisRequest.parse(data)
        report = await analyze_tactics(request, storage=storage, provider=provider, cfg=cfg)
    except AnalysisError as exc:
        if exc.kind is ErrorKind.INVALID_REQUEST and exc.stage is None:
            logger.info("Rejected analysis request: %s", exc.message)
        return to_error_response(exc)
    return 200, report.to_wire()

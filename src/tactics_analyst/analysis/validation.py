"""Response validator: turn raw function-call args into a :class:`TacticalReport`."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..errors import SchemaValidationFailure
from ..models.tactics import TacticalReport

logger = logging.getLogger(__name__)

SUGGESTED_MOMENTS = range(3, 6)


def _violation_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def validate_report(payload: Any) -> TacticalReport:
    """Validate *payload* against the report schema.

    Nothing is defaulted or coerced: a missing required field, a wrong
    primitive type or a wrong array shape fails the whole report.

    Raises:
        SchemaValidationFailure: Listing every violated field path.
    """
    if not isinstance(payload, dict):
        raise SchemaValidationFailure(
            f"Report payload must be an object, got {type(payload).__name__}",
            violations=["<root>"],
            payload=payload,
        )
    try:
        report = TacticalReport.model_validate(payload)
    except ValidationError as exc:
        violations = list(dict.fromkeys(_violation_path(err["loc"]) for err in exc.errors()))
        raise SchemaValidationFailure(
            f"Report failed schema validation: {', '.join(violations)}",
            violations=violations,
            payload=payload,
        ) from exc

    count = len(report.key_tactical_moments)
    if count not in SUGGESTED_MOMENTS:
        logger.warning("Report has %d key tactical moments (3-5 suggested)", count)
    return report

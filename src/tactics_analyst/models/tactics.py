"""Tactical analysis models: request shape and the structured report contract.

``TacticalReport`` validates the arguments Gemini passes to the forced
``saveTacticalReport`` function call. ``TACTICAL_REPORT_TOOL_SCHEMA`` is the
parameter schema declared for that function; the two must describe the same
shape (see ``tests/test_models.py``).
"""

from __future__ import annotations

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..errors import InvalidRequest

REPORT_TOOL_NAME = "saveTacticalReport"
REPORT_TOOL_DESCRIPTION = "Saves the extracted tactical analysis report."

_SUMMARY_DESC = "A concise overall summary of the tactical situation observed in the footage."
_FORMATION_DESC = "Analysis of the team formations, including strengths and weaknesses."
_MOMENTS_DESC = "A list of 3-5 key tactical moments or patterns observed."
_TIMESTAMP_DESC = "Approximate timestamp (e.g., MM:SS) of the moment, if discernible."
_MOMENT_DESC = (
    "Detailed description of the specific tactical moment (e.g., a specific press, "
    "counter-attack, defensive shape, individual brilliance)."
)
_HIGHLIGHTS_DESC = "Highlights of standout individual player performances or errors (optional)."
_PLAYER_DESC = "Name of the player involved, if identifiable."
_HIGHLIGHT_DESC = "Description of a notable individual action or contribution."
_IMPROVEMENTS_DESC = "Areas where tactical improvements could be made (optional)."


class _CamelModel(BaseModel):
    # camelCase keys only; snake_case payloads from the model are a shape error.
    model_config = ConfigDict(alias_generator=to_camel)


class KeyTacticalMoment(_CamelModel):
    """A single tactical moment, optionally pinned to a timestamp."""

    timestamp: str | None = Field(default=None, description=_TIMESTAMP_DESC)
    description: str = Field(description=_MOMENT_DESC)


class PlayerHighlight(_CamelModel):
    """A notable individual contribution."""

    player_name: str | None = Field(default=None, description=_PLAYER_DESC)
    highlight: str = Field(description=_HIGHLIGHT_DESC)


class TacticalReport(_CamelModel):
    """Structured tactical report returned to the caller.

    Serialised with camelCase keys (``overallSummary``, ``keyTacticalMoments``...).
    The 3-5 moment count is only suggested to the model, never enforced here.
    """

    overall_summary: str = Field(min_length=1, description=_SUMMARY_DESC)
    formation_analysis: str = Field(min_length=1, description=_FORMATION_DESC)
    key_tactical_moments: list[KeyTacticalMoment] = Field(description=_MOMENTS_DESC)
    player_highlights: list[PlayerHighlight] | None = Field(default=None, description=_HIGHLIGHTS_DESC)
    suggested_improvements: list[str] | None = Field(default=None, description=_IMPROVEMENTS_DESC)

    @field_validator("overall_summary", "formation_analysis")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_wire(self) -> dict:
        """Dump with camelCase keys, omitting optional sections that were not provided."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


TACTICAL_REPORT_TOOL_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "overallSummary": {"type": "string", "description": _SUMMARY_DESC},
        "formationAnalysis": {"type": "string", "description": _FORMATION_DESC},
        "keyTacticalMoments": {
            "type": "array",
            "description": _MOMENTS_DESC,
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": {"type": "string", "description": _TIMESTAMP_DESC},
                    "description": {"type": "string", "description": _MOMENT_DESC},
                },
                "required": ["description"],
            },
        },
        "playerHighlights": {
            "type": "array",
            "description": _HIGHLIGHTS_DESC,
            "items": {
                "type": "object",
                "properties": {
                    "playerName": {"type": "string", "description": _PLAYER_DESC},
                    "highlight": {"type": "string", "description": _HIGHLIGHT_DESC},
                },
                "required": ["highlight"],
            },
        },
        "suggestedImprovements": {
            "type": "array",
            "description": _IMPROVEMENTS_DESC,
            "items": {"type": "string"},
        },
    },
    "required": ["overallSummary", "formationAnalysis", "keyTacticalMoments"],
}


class AnalysisRequest(BaseModel):
    """Source selector for one analysis: a stored object or a preset video URL.

    Accepts the browser's wire names (``filename`` / ``presetUrl``) as well as
    ``storedFilename`` / ``presetVideoUrl``.
    """

    stored_filename: str | None = Field(
        default=None,
        validation_alias=AliasChoices("storedFilename", "filename", "stored_filename"),
    )
    preset_video_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("presetVideoUrl", "presetUrl", "preset_video_url"),
    )

    @field_validator("stored_filename", "preset_video_url")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def exactly_one_source(self) -> AnalysisRequest:
        if self.stored_filename is None and self.preset_video_url is None:
            raise ValueError("Either filename or presetUrl is required in the request body")
        if self.stored_filename is not None and self.preset_video_url is not None:
            raise ValueError("Provide exactly one of filename or presetUrl, not both")
        return self

    @classmethod
    def parse(cls, data: object) -> AnalysisRequest:
        """Validate raw input, raising :class:`InvalidRequest` on any problem."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            messages = [err["msg"].removeprefix("Value error, ") for err in exc.errors()]
            raise InvalidRequest("; ".join(messages), details="; ".join(messages)) from exc

"""Structured report requester: forced function-call generation against an ACTIVE file."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import ExtractionFailure
from ..models.files import FileReference, RemoteFileHandle, ToolDeclaration
from ..models.tactics import REPORT_TOOL_DESCRIPTION, REPORT_TOOL_NAME, TACTICAL_REPORT_TOOL_SCHEMA
from ..prompts.tactics import ANALYSIS_PROMPT, SYSTEM_INSTRUCTION
from .ports import AnalysisProvider

logger = logging.getLogger(__name__)

REPORT_TOOL = ToolDeclaration(
    name=REPORT_TOOL_NAME,
    description=REPORT_TOOL_DESCRIPTION,
    parameters=TACTICAL_REPORT_TOOL_SCHEMA,
)


async def request_report(provider: AnalysisProvider, handle: RemoteFileHandle) -> Any:
    """Ask the model for a tactical report and return the raw function-call args.

    Raises:
        ExtractionFailure: If the model answered with text instead of calling
            ``saveTacticalReport``. The text is kept for diagnostics only.
    """
    result = await provider.generate(
        system_instruction=SYSTEM_INSTRUCTION,
        contents=[FileReference(uri=handle.uri, mime_type=handle.mime_type), ANALYSIS_PROMPT],
        tools=[REPORT_TOOL],
        forced_tool_name=REPORT_TOOL_NAME,
    )
    if result.tool_name != REPORT_TOOL_NAME:
        raise ExtractionFailure(
            "Model did not return the expected function call",
            raw_text=result.text,
            identifier=handle.identifier,
        )
    logger.info("Function call '%s' received for %s", REPORT_TOOL_NAME, handle.identifier)
    return result.tool_args

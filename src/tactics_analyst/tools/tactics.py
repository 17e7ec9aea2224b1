"""Tactical analysis tool: 1 tool on a FastMCP sub-server."""

from __future__ import annotations

import logging

from fastmcp import Context, FastMCP
from mcp.types import ToolAnnotations

from ..analysis.orchestrator import analyze_tactics
from ..errors import make_tool_error
from ..models.tactics import AnalysisRequest
from ..services import Services
from ..types import PresetVideoUrl, StoredFilename

logger = logging.getLogger(__name__)
tactics_server = FastMCP("tactics")


def lifespan_services(ctx: Context) -> Services:
    """Return the collaborators built by the server lifespan."""
    return ctx.request_context.lifespan_context["services"]


@tactics_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
async def tactics_analyze(
    ctx: Context,
    stored_filename: StoredFilename | None = None,
    preset_video_url: PresetVideoUrl | None = None,
) -> dict:
    """Produce a structured tactical report for one soccer highlight video.

    Provide exactly one of stored_filename or preset_video_url. The video is
    uploaded to Gemini, analysed once it is ready, and deleted afterwards.

    Args:
        stored_filename: Object name of a video in the storage bucket (max 20 MB).
        preset_video_url: HTTPS URL of a preset highlight video.

    Returns:
        Dict with overallSummary, formationAnalysis, keyTacticalMoments and the
        optional playerHighlights / suggestedImprovements, or an error dict
        with error, details, kind and http_status.
    """
    try:
        request = AnalysisRequest.parse({
            "storedFilename": stored_filename,
            "presetVideoUrl": preset_video_url,
        })
        services = lifespan_services(ctx)
        report = await analyze_tactics(
            request,
            storage=services.storage,
            provider=services.provider,
            cfg=services.config,
        )
    except Exception as exc:
        return make_tool_error(exc)
    return report.to_wire()

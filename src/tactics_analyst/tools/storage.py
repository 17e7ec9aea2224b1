"""Storage tools: 3 tools on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .. import tracing
from ..errors import StorageError, make_tool_error
from ..types import ContentType, StoredFilename
from .tactics import lifespan_services

storage_server = FastMCP("storage")

_READ_ONLY = ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=True,
)


@storage_server.tool(annotations=_READ_ONLY)
async def storage_signed_url(
    ctx: Context,
    filename: StoredFilename,
    ttl_seconds: Annotated[int | None, Field(ge=1, le=604800, description="URL lifetime override")] = None,
) -> dict:
    """Get a time-limited read URL for a stored video.

    Returns:
        Dict with ``url``, or an error dict.
    """
    with tracing.span("storage_signed_url", span_type="TOOL", filename=filename):
        try:
            url = await lifespan_services(ctx).storage.signed_read_url(filename, ttl_seconds)
        except Exception as exc:
            return make_tool_error(StorageError(f"Failed to get signed URL: {exc}", details="Failed to get signed URL"))
    return {"url": url}


@storage_server.tool(annotations=_READ_ONLY)
async def storage_upload_url(
    ctx: Context,
    filename: StoredFilename,
    content_type: ContentType,
) -> dict:
    """Get a time-limited upload URL the browser can PUT a video to.

    The upload must send the same Content-Type header as ``content_type``.

    Returns:
        Dict with ``url``, or an error dict.
    """
    with tracing.span("storage_upload_url", span_type="TOOL", filename=filename, content_type=content_type):
        try:
            url = await lifespan_services(ctx).storage.signed_write_url(filename, content_type)
        except Exception as exc:
            return make_tool_error(
                StorageError(f"Failed to get signed upload URL: {exc}", details="Failed to get signed upload URL")
            )
    return {"url": url}


@storage_server.tool(annotations=_READ_ONLY)
async def storage_list_files(ctx: Context) -> dict:
    """List the object names in the storage bucket."""
    with tracing.span("storage_list_files", span_type="TOOL"):
        try:
            files = await lifespan_services(ctx).storage.list_files()
        except Exception as exc:
            return make_tool_error(StorageError(f"Failed to list files: {exc}", details="Failed to list files"))
    return {"files": files}

"""Upload adapter: resolve the request's video bytes and push them to the provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..config import AppConfig
from ..errors import PayloadTooLarge
from ..models.files import RemoteFileHandle
from ..models.tactics import AnalysisRequest
from ..url_policy import fetch_video
from .ports import AnalysisProvider, ObjectStorage

logger = logging.getLogger(__name__)


@dataclass
class SourceVideo:
    """Video bytes ready for upload."""

    data: bytes
    mime_type: str
    display_name: str


def preset_display_name(url: str) -> str:
    """Last path segment of *url* without the query, or a timestamped fallback."""
    name = url.rsplit("/", 1)[-1].split("?", 1)[0]
    return name or f"preset-{int(time.time() * 1000)}"


async def _from_storage(filename: str, storage: ObjectStorage, cfg: AppConfig) -> SourceVideo:
    meta = await storage.get_metadata(filename)
    if meta.size_bytes > cfg.max_stored_bytes:
        limit_mb = cfg.max_stored_bytes // (1024 * 1024)
        raise PayloadTooLarge(
            f"Stored file {filename} is {meta.size_bytes} bytes, limit is {cfg.max_stored_bytes}",
            details=f"File too large. Max size is {limit_mb}MB.",
        )
    logger.info("Downloading video from storage for analysis: %s", filename)
    data = await storage.download_bytes(filename)
    return SourceVideo(data=data, mime_type=meta.content_type, display_name=filename)


async def _from_preset(url: str, cfg: AppConfig) -> SourceVideo:
    display_name = preset_display_name(url)
    logger.info("Fetching video from preset URL: %s", display_name)
    fetched = await fetch_video(
        url, max_bytes=cfg.max_preset_bytes, timeout=cfg.fetch_timeout_seconds,
    )
    return SourceVideo(data=fetched.data, mime_type=fetched.content_type, display_name=display_name)


async def resolve_source(request: AnalysisRequest, *, storage: ObjectStorage, cfg: AppConfig) -> SourceVideo:
    """Fetch the bytes named by *request*.

    The stored-file size ceiling is checked against metadata before the body
    is downloaded.
    """
    if request.stored_filename is not None:
        return await _from_storage(request.stored_filename, storage, cfg)
    return await _from_preset(request.preset_video_url or "", cfg)


async def upload_video(
    request: AnalysisRequest,
    *,
    storage: ObjectStorage,
    provider: AnalysisProvider,
    cfg: AppConfig,
) -> RemoteFileHandle:
    """Resolve the source and upload it, returning the fresh remote handle."""
    source = await resolve_source(request, storage=storage, cfg=cfg)
    logger.info("Uploading %s (%s) to the File API", source.display_name, source.mime_type)
    return await provider.upload_file(
        source.data, mime_type=source.mime_type, display_name=source.display_name,
    )

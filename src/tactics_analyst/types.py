"""Shared type aliases for tool and route parameters."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

StoredFilename = Annotated[str, Field(
    min_length=1,
    description="Object name of a video previously uploaded to the storage bucket",
)]
PresetVideoUrl = Annotated[str, Field(
    min_length=10,
    description="HTTPS URL of a preset highlight video",
)]
ContentType = Annotated[str, Field(
    min_length=3,
    description="MIME type the browser will send with the upload, e.g. video/mp4",
)]

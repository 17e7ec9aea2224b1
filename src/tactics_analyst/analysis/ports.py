"""Collaborator contracts the analysis pipeline depends on.

``GeminiFileProvider`` and ``GCSStorage`` satisfy these structurally; tests
pass fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..models.files import (
    FileReference,
    GenerationResult,
    RemoteFileHandle,
    StoredObjectInfo,
    ToolDeclaration,
)


class AnalysisProvider(Protocol):
    async def upload_file(self, data: bytes, *, mime_type: str, display_name: str) -> RemoteFileHandle: ...

    async def get_file(self, identifier: str) -> RemoteFileHandle: ...

    async def delete_file(self, identifier: str) -> None: ...

    async def generate(
        self,
        *,
        system_instruction: str,
        contents: Sequence[FileReference | str],
        tools: Sequence[ToolDeclaration],
        forced_tool_name: str | None = None,
    ) -> GenerationResult: ...


class ObjectStorage(Protocol):
    async def get_metadata(self, filename: str) -> StoredObjectInfo: ...

    async def download_bytes(self, filename: str) -> bytes: ...

    async def signed_read_url(self, filename: str, ttl: int | None = None) -> str: ...

    async def signed_write_url(self, filename: str, content_type: str, ttl: int | None = None) -> str: ...

    async def list_files(self) -> list[str]: ...

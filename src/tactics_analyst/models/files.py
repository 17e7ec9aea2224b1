"""Remote file and storage object models.

``RemoteFileHandle`` mirrors a Gemini File API resource; ``StoredObjectInfo``
is what the object store reports before a download.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FileState(str, Enum):
    """Known processing states of a remote file."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"


class RemoteFileHandle(BaseModel):
    """One uploaded asset on the provider side.

    ``state`` keeps the raw provider value so that unknown states can be
    reported verbatim instead of being coerced on the way in.
    """

    identifier: str
    state: str
    uri: str = ""
    mime_type: str = ""
    display_name: str = ""

    def known_state(self) -> FileState | None:
        """Return the parsed state, or None when the provider sent something unknown."""
        try:
            return FileState(self.state)
        except ValueError:
            return None


class StoredObjectInfo(BaseModel):
    """Size and content type of an object in the storage bucket."""

    size_bytes: int = Field(ge=0)
    content_type: str = "video/mp4"


class FileReference(BaseModel):
    """Pointer to an ACTIVE remote file inside a generation request."""

    uri: str
    mime_type: str


class ToolDeclaration(BaseModel):
    """A function the model may (or must) call, with its JSON Schema parameters."""

    name: str
    description: str
    parameters: dict[str, Any]


class GenerationResult(BaseModel):
    """Outcome of a generation call: a function call, free text, or both."""

    tool_name: str | None = None
    tool_args: Any = None
    text: str = ""

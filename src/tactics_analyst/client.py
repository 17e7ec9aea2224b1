"""Gemini File API provider: upload, status, delete, and forced function-call generation."""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import AppConfig
from .errors import HandleNotFound
from .models.files import FileReference, GenerationResult, RemoteFileHandle, ToolDeclaration
from .retry import with_retry

logger = logging.getLogger(__name__)

# Gemini reports a freshly created file as STATE_UNSPECIFIED before processing starts.
_STATE_ALIASES: dict[str, str] = {"STATE_UNSPECIFIED": "PENDING"}


def _state_value(state: object) -> str:
    """Normalise an SDK FileState (enum, str or None) to a plain string."""
    if state is None:
        return "PENDING"
    raw = str(getattr(state, "value", state)).upper()
    return _STATE_ALIASES.get(raw, raw)


def to_handle(file: types.File) -> RemoteFileHandle:
    """Convert an SDK ``File`` resource into a :class:`RemoteFileHandle`."""
    return RemoteFileHandle(
        identifier=file.name or "",
        state=_state_value(file.state),
        uri=file.uri or "",
        mime_type=file.mime_type or "",
        display_name=file.display_name or "",
    )


def _build_contents(parts: Sequence[FileReference | str]) -> list[types.Content]:
    """Build a single user turn from file references and text prompts."""
    sdk_parts: list[types.Part] = []
    for part in parts:
        if isinstance(part, FileReference):
            sdk_parts.append(types.Part(
                file_data=types.FileData(file_uri=part.uri, mime_type=part.mime_type),
            ))
        else:
            sdk_parts.append(types.Part(text=part))
    return [types.Content(role="user", parts=sdk_parts)]


def _text_of(response: types.GenerateContentResponse) -> str:
    """Join the visible text parts of the first candidate."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    parts = content.parts if content and content.parts else []
    return "\n".join(p.text for p in parts if p.text and not getattr(p, "thought", False))


class GeminiFileProvider:
    """Remote analysis provider backed by one ``genai.Client``.

    Built once by the application's startup routine and shared by every
    request; the SDK client is safe for concurrent use.
    """

    def __init__(
        self,
        client: genai.Client,
        *,
        model: str,
        retry_max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 60.0,
    ) -> None:
        self._client = client
        self.model = model
        self._retry = {
            "max_attempts": retry_max_attempts,
            "base_delay": retry_base_delay,
            "max_delay": retry_max_delay,
        }

    @classmethod
    def from_config(cls, cfg: AppConfig) -> GeminiFileProvider:
        """Create the provider from config.

        Raises:
            ValueError: If no API key is configured.
        """
        if not cfg.gemini_api_key:
            raise ValueError("No Gemini API key: set GEMINI_API_KEY")
        client = genai.Client(api_key=cfg.gemini_api_key)
        logger.info("Created Gemini client (key …%s, model=%s)", cfg.gemini_api_key[-4:], cfg.gemini_model)
        return cls(
            client,
            model=cfg.gemini_model,
            retry_max_attempts=cfg.retry_max_attempts,
            retry_base_delay=cfg.retry_base_delay,
            retry_max_delay=cfg.retry_max_delay,
        )

    async def upload_file(self, data: bytes, *, mime_type: str, display_name: str) -> RemoteFileHandle:
        """Upload raw bytes to the File API. Not retried: a retry could orphan a file."""
        uploaded = await self._client.aio.files.upload(
            file=io.BytesIO(data),
            config=types.UploadFileConfig(mime_type=mime_type, display_name=display_name),
        )
        handle = to_handle(uploaded)
        logger.info(
            "Uploaded %s → %s (%d bytes, state=%s)",
            display_name, handle.identifier, len(data), handle.state,
        )
        return handle

    async def get_file(self, identifier: str) -> RemoteFileHandle:
        """Re-fetch a file's metadata and processing state.

        Raises:
            HandleNotFound: If the provider no longer knows the file.
        """
        try:
            info = await with_retry(lambda: self._client.aio.files.get(name=identifier), **self._retry)
        except genai_errors.APIError as exc:
            if exc.code == 404:
                raise HandleNotFound(
                    f"Uploaded file not found ({identifier}). It might have expired or been deleted.",
                    identifier=identifier,
                ) from exc
            raise
        return to_handle(info)

    async def delete_file(self, identifier: str) -> None:
        """Delete a file.

        Raises:
            HandleNotFound: If the file is already gone.
        """
        try:
            await self._client.aio.files.delete(name=identifier)
        except genai_errors.APIError as exc:
            if exc.code == 404:
                raise HandleNotFound(f"File already deleted: {identifier}", identifier=identifier) from exc
            raise

    async def generate(
        self,
        *,
        system_instruction: str,
        contents: Sequence[FileReference | str],
        tools: Sequence[ToolDeclaration],
        forced_tool_name: str | None = None,
    ) -> GenerationResult:
        """Run one generation call, optionally forcing a specific function call.

        Forcing maps to ``FunctionCallingConfig(mode=ANY)`` restricted to
        ``forced_tool_name``. The first matching function call wins.
        """
        config = types.GenerateContentConfig(system_instruction=system_instruction)
        if tools:
            config.tools = [types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=tool.name,
                    description=tool.description,
                    parameters_json_schema=tool.parameters,
                )
                for tool in tools
            ])]
        if forced_tool_name:
            config.tool_config = types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(
                    mode=types.FunctionCallingConfigMode.ANY,
                    allowed_function_names=[forced_tool_name],
                )
            )

        sdk_contents = _build_contents(contents)
        response = await with_retry(
            lambda: self._client.aio.models.generate_content(
                model=self.model,
                contents=sdk_contents,
                config=config,
            ),
            **self._retry,
        )

        for call in response.function_calls or []:
            if forced_tool_name is None or call.name == forced_tool_name:
                return GenerationResult(tool_name=call.name, tool_args=call.args, text=_text_of(response))
        return GenerationResult(text=_text_of(response))

    async def aclose(self) -> None:
        """Release the SDK's HTTP connections."""
        try:
            await self._client.aio.aclose()
        except Exception:
            logger.debug("Gemini async client close failed", exc_info=True)
        logger.info("Closed Gemini client")

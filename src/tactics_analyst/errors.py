"""Structured error handling: error kinds, HTTP status mapping, and the caller-facing error model."""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

import httpx
from google.genai import errors as genai_errors
from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Discriminant for every failure the analysis pipeline can surface."""

    INVALID_REQUEST = "INVALID_REQUEST"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    UPSTREAM_FETCH_FAILURE = "UPSTREAM_FETCH_FAILURE"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    PROCESSING_TIMEOUT = "PROCESSING_TIMEOUT"
    UNEXPECTED_PROVIDER_STATE = "UNEXPECTED_PROVIDER_STATE"
    HANDLE_NOT_FOUND = "HANDLE_NOT_FOUND"
    EXTRACTION_FAILURE = "EXTRACTION_FAILURE"
    SCHEMA_VALIDATION_FAILURE = "SCHEMA_VALIDATION_FAILURE"
    STORED_FILE_NOT_FOUND = "STORED_FILE_NOT_FOUND"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL = "INTERNAL"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.UPSTREAM_FETCH_FAILURE: 502,
    ErrorKind.PROCESSING_FAILED: 500,
    ErrorKind.PROCESSING_TIMEOUT: 504,
    ErrorKind.UNEXPECTED_PROVIDER_STATE: 500,
    ErrorKind.HANDLE_NOT_FOUND: 404,
    ErrorKind.EXTRACTION_FAILURE: 500,
    ErrorKind.SCHEMA_VALIDATION_FAILURE: 500,
    ErrorKind.STORED_FILE_NOT_FOUND: 404,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.STORAGE_ERROR: 500,
    ErrorKind.INTERNAL: 500,
}


class ErrorResponse(BaseModel):
    """Caller-visible error body."""

    error: str
    details: Any = None


class AnalysisError(Exception):
    """Base class for classified failures.

    ``kind`` selects the HTTP status; ``summary`` is the short caller-facing
    ``error`` string and ``details`` the caller-facing elaboration.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL
    summary: ClassVar[str] = "Analysis failed"

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        identifier: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.identifier = identifier
        self.stage = stage

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_response(self) -> ErrorResponse:
        details = self.details if self.details is not None else self.message
        return ErrorResponse(error=self.summary, details=details)


class InvalidRequest(AnalysisError):
    kind = ErrorKind.INVALID_REQUEST
    summary = "Invalid analysis request"


class PayloadTooLarge(AnalysisError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE
    summary = "File too large"


class UpstreamFetchFailure(AnalysisError):
    kind = ErrorKind.UPSTREAM_FETCH_FAILURE
    summary = "Failed to retrieve preset video"

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code


class ProcessingFailed(AnalysisError):
    kind = ErrorKind.PROCESSING_FAILED


class ProcessingTimeout(AnalysisError):
    kind = ErrorKind.PROCESSING_TIMEOUT


class UnexpectedProviderState(AnalysisError):
    kind = ErrorKind.UNEXPECTED_PROVIDER_STATE


class HandleNotFound(AnalysisError):
    kind = ErrorKind.HANDLE_NOT_FOUND


class ExtractionFailure(AnalysisError):
    kind = ErrorKind.EXTRACTION_FAILURE
    summary = "Failed to extract structured report."

    def __init__(self, message: str, *, raw_text: str = "", **kwargs: Any) -> None:
        kwargs.setdefault("details", f"Model returned text: {raw_text}")
        super().__init__(message, **kwargs)
        self.raw_text = raw_text


class SchemaValidationFailure(AnalysisError):
    kind = ErrorKind.SCHEMA_VALIDATION_FAILURE
    summary = "Failed to generate report in the correct format."

    def __init__(
        self,
        message: str,
        *,
        violations: list[str],
        payload: Any = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("details", {"violations": violations})
        super().__init__(message, **kwargs)
        self.violations = violations
        self.payload = payload


class StoredFileNotFound(AnalysisError):
    kind = ErrorKind.STORED_FILE_NOT_FOUND
    summary = "Stored file not found"


class ProviderError(AnalysisError):
    kind = ErrorKind.PROVIDER_ERROR


class StorageError(AnalysisError):
    kind = ErrorKind.STORAGE_ERROR
    summary = "Storage request failed"


class InternalError(AnalysisError):
    kind = ErrorKind.INTERNAL


def classify_error(error: Exception) -> AnalysisError:
    """Map any exception to an :class:`AnalysisError`.

    Classification is by type and status code only.
    """
    if isinstance(error, AnalysisError):
        return error
    if isinstance(error, genai_errors.APIError):
        # File-level 404s are mapped by the provider itself; anything left is a provider fault.
        return ProviderError(f"Gemini API error {error.code}: {error.message}")
    if isinstance(error, httpx.HTTPError):
        return UpstreamFetchFailure(f"Network error: {error}")
    return InternalError(
        str(error) or type(error).__name__,
        details="An unknown error occurred during analysis",
    )


def to_error_response(error: Exception) -> tuple[int, dict]:
    """Translate an exception into ``(http_status, {"error", "details"})``."""
    classified = classify_error(error)
    body = classified.to_response().model_dump(mode="json")
    return classified.http_status, body


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable error dict for MCP tool responses."""
    classified = classify_error(error)
    body = classified.to_response().model_dump(mode="json")
    body["kind"] = classified.kind.value
    body["http_status"] = classified.http_status
    return body

"""HTTP API for the browser UI: tactical analysis and storage signed URLs."""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from . import tracing
from .analysis.orchestrator import analyze_to_response
from .config import get_config
from .errors import ErrorResponse
from .services import Services, build_services

logger = logging.getLogger(__name__)

router = APIRouter()


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start_time = time.monotonic()
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "API_REQUEST %s %s → %d (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={"request_id": request_id},
        )
        return response


def get_services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str, details: object = None) -> JSONResponse:
    body = ErrorResponse(error=message, details=details).model_dump(mode="json", exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/api/analyze/tactics")
async def analyze_tactics_route(request: Request, services: Services = Depends(get_services)):
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be JSON")
    status_code, payload = await analyze_to_response(
        body,
        storage=services.storage,
        provider=services.provider,
        cfg=services.config,
    )
    return JSONResponse(status_code=status_code, content=payload)


@router.get("/api/storage/signed-url")
async def signed_url_route(filename: str | None = None, services: Services = Depends(get_services)):
    if not filename:
        return _error(400, "Filename is required")
    try:
        url = await services.storage.signed_read_url(filename)
    except Exception:
        logger.exception("Error getting signed URL for %s", filename)
        return _error(500, "Failed to get signed URL")
    return {"url": url}


@router.get("/api/storage/upload-url")
async def upload_url_route(
    filename: str | None = None,
    contentType: str | None = None,  # noqa: N803 (query parameter name used by the UI)
    services: Services = Depends(get_services),
):
    if not filename:
        return _error(400, "Filename is required")
    if not contentType:
        return _error(400, "Content type is required")
    try:
        url = await services.storage.signed_write_url(filename, contentType)
    except Exception:
        logger.exception("Error getting signed upload URL for %s", filename)
        return _error(500, "Failed to get signed upload URL")
    return {"url": url}


@router.get("/api/storage/files")
async def list_files_route(services: Services = Depends(get_services)):
    try:
        files = await services.storage.list_files()
    except Exception:
        logger.exception("Error listing stored files")
        return _error(500, "Failed to list files")
    return {"files": files}


@router.get("/healthz", include_in_schema=False)
async def health():
    return {"status": "ok"}


def create_app(services: Services | None = None) -> FastAPI:
    """Build the FastAPI app.

    When *services* is None the lifespan builds the real collaborators from
    config and closes them on shutdown; tests inject fakes instead.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = build_services() if owned else services
        tracing.setup(app.state.services.config)
        yield
        tracing.shutdown()
        if owned:
            await app.state.services.aclose()
            logger.info("Lifespan shutdown: services closed")

    app = FastAPI(title="Tactics Analyst", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)

    origins = (services.config if services else get_config()).cors_allow_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception during request.")
        return _error(500, "Unexpected server error")

    app.include_router(router)
    return app


def main() -> None:
    """Entry-point for the ``tactics-analyst-web`` console script."""
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()

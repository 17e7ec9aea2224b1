"""Main FastMCP server: mounts the tactics and storage sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .services import build_services
from .tools.storage import storage_server
from .tools.tactics import tactics_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook: owns the storage and Gemini collaborators."""
    services = build_services()
    tracing.setup(services.config)
    try:
        yield {"services": services}
    finally:
        tracing.shutdown()
        await services.aclose()
        logger.info("Lifespan shutdown: services closed")


app = FastMCP(
    "tactics-analyst",
    instructions=(
        "Soccer tactical analyst: uploads a highlight video to Gemini and "
        "returns a structured tactical report. Also issues signed storage URLs."
    ),
    lifespan=_lifespan,
)

app.mount(tactics_server)
app.mount(storage_server)


def main() -> None:
    """Entry-point for the ``tactics-analyst-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()

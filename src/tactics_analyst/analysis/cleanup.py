"""Cleanup guarantor: delete the remote file exactly once, whatever happens."""

from __future__ import annotations

import asyncio
import logging

from ..errors import HandleNotFound
from .ports import AnalysisProvider

logger = logging.getLogger(__name__)


class RemoteFileScope:
    """Async context manager owning one remote file identifier.

    Usage::

        async with RemoteFileScope(provider) as scope:
            handle = await provider.upload_file(...)
            scope.track(handle.identifier)
            ...

    On exit (normal, exception or cancellation) the tracked file is deleted
    once. Delete failures are logged and swallowed; they never replace the
    result or the error of the wrapped block.
    """

    def __init__(self, provider: AnalysisProvider) -> None:
        self._provider = provider
        self.identifier: str | None = None
        self.released = False

    def track(self, identifier: str) -> None:
        self.identifier = identifier

    async def __aenter__(self) -> RemoteFileScope:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await asyncio.shield(self.release())
        return False

    async def release(self) -> None:
        """Issue the single delete call, if there is anything to delete."""
        if self.released or self.identifier is None:
            return
        self.released = True
        identifier = self.identifier
        try:
            await self._provider.delete_file(identifier)
            logger.info("Deleted remote file %s", identifier)
        except HandleNotFound:
            logger.debug("Remote file %s already gone", identifier)
        except Exception:
            logger.warning("Error deleting remote file %s", identifier, exc_info=True)

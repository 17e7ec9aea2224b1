"""Readiness poller: wait for an uploaded file to become ACTIVE."""

from __future__ import annotations

import asyncio
import logging

from ..errors import ProcessingFailed, ProcessingTimeout, UnexpectedProviderState
from ..models.files import FileState, RemoteFileHandle
from .ports import AnalysisProvider

logger = logging.getLogger(__name__)

_STILL_PROCESSING = frozenset({FileState.PENDING, FileState.PROCESSING})


async def wait_for_active(
    provider: AnalysisProvider,
    handle: RemoteFileHandle,
    *,
    interval: float = 2.0,
    timeout: float = 300.0,
) -> RemoteFileHandle:
    """Poll the provider until *handle* is ACTIVE.

    Elapsed time is the sum of the sleeps. The last sleep is cut to whatever
    is left of *timeout*, and the state is checked once more after it, so a
    file that turns ACTIVE at the deadline is still returned. Cancellation
    propagates out of ``asyncio.sleep``.

    Args:
        provider: Source of refreshed handles.
        handle: Handle as returned by the upload.
        interval: Seconds between status checks.
        timeout: Total seconds to wait before giving up.

    Returns:
        The ACTIVE handle (with its final ``uri``/``mime_type``).

    Raises:
        ProcessingFailed: If the provider reports FAILED.
        ProcessingTimeout: If the file is still processing after *timeout*.
        UnexpectedProviderState: If the state is outside the known set.
        HandleNotFound: If the provider lost the file (raised by the provider).
    """
    waited = 0.0
    while True:
        state = handle.known_state()
        if state is FileState.ACTIVE:
            if waited:
                logger.info("File %s active after %.0fs", handle.identifier, waited)
            return handle
        if state is FileState.FAILED:
            raise ProcessingFailed(
                f"File processing failed for {handle.display_name or handle.identifier}",
                identifier=handle.identifier,
            )
        if state not in _STILL_PROCESSING:
            raise UnexpectedProviderState(
                f"Unexpected file state: {handle.state}",
                identifier=handle.identifier,
            )
        if waited >= timeout:
            raise ProcessingTimeout(
                f"File processing timed out after {timeout:.0f} seconds. Current state: {handle.state}",
                identifier=handle.identifier,
            )

        # Last step is shortened so the summed sleeps land exactly on the budget.
        step = min(interval, timeout - waited)
        await asyncio.sleep(step)
        waited += step
        handle = await provider.get_file(handle.identifier)
        logger.debug("File state: %s (waited %.0fs)", handle.state, waited)

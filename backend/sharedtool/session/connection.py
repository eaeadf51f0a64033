"""
Wait for a shared host session.

The tool is often started by the host itself while the model is still
opening. The connection wait polls the host until a shared session is
connected, a timeout passes, or the owning session cancels the wait.

Probe failures (the host raising while it starts or shuts down) count as
"not connected" for that tick and never end the loop.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..polling import Deadline, pause
from .errors import SessionNotConnectedError, SharedSessionRequiredError
from .host import HostSession

logger = logging.getLogger(__name__)


DEFAULT_CONNECTION_TIMEOUT_SECONDS = 300
DEFAULT_CONNECTION_POLL_SECONDS = 5


def probe_shared_session(host: HostSession) -> Optional[Path]:
    """
    Ask the host once for a shared session.

    Returns:
        Storage path of the shared session, or None (also on probe failure)
    """
    try:
        if not host.is_connected():
            logger.debug("Host probe: not connected")
            return None
        if not host.is_shared():
            logger.debug("Host probe: connected, not a shared session")
            return None
        return host.storage_path()
    except Exception as e:
        logger.warning(f"Host probe failed, treating as not connected: {e}")
        return None


def require_shared_session(host: HostSession) -> Path:
    """
    Storage path of the connected shared session.

    Raises:
        SessionNotConnectedError: No session, or the probe failed
        SharedSessionRequiredError: Session is connected but not shared
    """
    try:
        connected = host.is_connected()
        shared = connected and host.is_shared()
        storage_path = host.storage_path() if shared else None
    except Exception as e:
        raise SessionNotConnectedError(f"Host probe failed: {e}") from e

    if not connected:
        raise SessionNotConnectedError("No host session is connected")
    if not shared:
        raise SharedSessionRequiredError("The connected host session is not shared")
    if not storage_path:
        raise SessionNotConnectedError("Shared session has no storage path")
    return Path(storage_path)


async def wait_for_shared_session(
    host: HostSession,
    max_wait_seconds: float = DEFAULT_CONNECTION_TIMEOUT_SECONDS,
    poll_interval_seconds: float = DEFAULT_CONNECTION_POLL_SECONDS,
    cancel_event: Optional[asyncio.Event] = None,
) -> Optional[Path]:
    """
    Poll the host until a shared session is connected.

    Returns:
        Storage path of the session; None on timeout or cancellation
    """
    deadline = Deadline(max_wait_seconds)
    attempt = 0

    while not deadline.expired():
        attempt += 1
        storage_path = probe_shared_session(host)
        if storage_path is not None:
            logger.info(f"Shared session connected after {attempt} attempt(s): {storage_path}")
            return storage_path

        if await pause(poll_interval_seconds, cancel_event):
            logger.info("Connection wait cancelled")
            return None

    logger.warning(f"No shared session after {max_wait_seconds}s ({attempt} attempts)")
    return None

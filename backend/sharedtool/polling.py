"""
Bounded, cancellable poll loops.

Every long wait in SharedTool (host connection, confirmation, auto-login)
is a poll loop that:
- suspends only at its pause step, so the event loop stays free
- gives up after a wall-clock timeout
- stops early when the owning session sets its cancel event
"""

import asyncio
import time
from typing import Optional


async def pause(seconds: float, cancel_event: Optional[asyncio.Event] = None) -> bool:
    """
    Sleep between poll attempts.

    Returns:
        True if the cancel event was set (the loop must stop), False otherwise
    """
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return False

    if cancel_event.is_set():
        return True

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


class Deadline:
    """Wall-clock budget of a poll loop, measured on the monotonic clock."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._start = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def expired(self) -> bool:
        return self.elapsed >= self.seconds

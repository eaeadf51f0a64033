"""
Confirmation wait for host-side actions.

After SharedTool triggers a read-in or write-out macro in the host
application, it does not trust the trigger. It waits for the host to append
a confirmation line to its model-sharing log:

    ... [2024-01-01 10:03:12] ... Read-in result: OK. ...

A line counts only when:
1. It contains the marker (case-insensitive)
2. Its first bracketed token parses as a timestamp
3. That timestamp is >= `since` (slightly before this operation started)

The log is shared and long-lived, so it is scanned from the end backward:
the newest matching line is the only one that can confirm this operation,
and older markers belong to earlier, unrelated actions.

Timestamps without an offset are taken as UTC.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from ..log_snapshot import log_snapshot
from ..polling import Deadline, pause

logger = logging.getLogger(__name__)


DEFAULT_MAX_WAIT_SECONDS = 300
DEFAULT_POLL_INTERVAL_SECONDS = 5

READ_IN_MARKER = "Read-in result: OK."
WRITE_OUT_MARKER = "WriteOut OK"

# Non-ISO layouts seen in host logs, tried after datetime.fromisoformat
_FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S,%f",
    "%Y/%m/%d %H:%M:%S",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
)


def to_utc(value: datetime) -> datetime:
    """
    Convert an instant to aware UTC.

    Naive values are local wall-clock time, as produced by datetime.now().
    """
    return value.astimezone(timezone.utc)


def parse_log_timestamp(text: str) -> Optional[datetime]:
    """
    Parse a bracketed log timestamp into an aware UTC datetime.

    Returns:
        The instant, or None if the text is not a recognizable timestamp
    """
    text = text.strip()
    if not text:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)

    # Offsets can push an edge-of-range instant outside datetime limits
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def bracketed_token(line: str) -> Optional[str]:
    """Return the text between the first '[' and the next ']', or None."""
    start = line.find("[")
    if start < 0:
        return None
    end = line.find("]", start + 1)
    if end <= start + 1:
        return None
    return line[start + 1:end]


def find_confirmation(lines: Iterable[str], marker: str, since: datetime) -> bool:
    """
    Scan log lines newest-first for a confirmation of `marker` at or after `since`.

    Marker lines without a parseable timestamp, or older than `since`,
    are passed over.
    """
    since_utc = to_utc(since)
    needle = marker.casefold()

    for line in reversed(list(lines)):
        if needle not in line.casefold():
            continue

        token = bracketed_token(line)
        if token is None:
            continue

        stamp = parse_log_timestamp(token)
        if stamp is None:
            continue

        if stamp >= since_utc:
            return True

    return False


def has_confirmation_line(
    log_path: Union[str, Path],
    marker: str,
    since: datetime,
) -> bool:
    """
    Check a log once for a confirmation line.

    The log is copied to a private temporary file which is removed even
    when the scan fails.

    Raises:
        OSError: If the snapshot cannot be read
    """
    with log_snapshot(log_path) as copy:
        if copy is None:
            return False
        with open(copy, "r", encoding="utf-8", errors="replace") as f:
            return find_confirmation(f.read().splitlines(), marker, since)


async def wait_for_confirmation(
    log_path: Union[str, Path],
    marker: str,
    since: datetime,
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    cancel_event: Optional[asyncio.Event] = None,
) -> bool:
    """
    Wait until the host confirms an action in its log.

    Each attempt snapshots and scans the log in the default executor.
    An I/O failure in one attempt is logged and treated as "not yet";
    only the overall timeout (or cancellation) ends the wait unsuccessfully.

    Args:
        log_path: Log file appended to by the host
        marker: Confirmation marker substring
        since: Earliest acceptable confirmation instant
        max_wait_seconds: Wall-clock budget for the whole wait
        poll_interval_seconds: Pause between attempts
        cancel_event: Set by the owning session to abandon the wait

    Returns:
        True once confirmed; False on timeout or cancellation
    """
    since_utc = to_utc(since)
    loop = asyncio.get_running_loop()
    deadline = Deadline(max_wait_seconds)
    attempt = 0

    logger.info(
        f"Waiting for '{marker}' in {log_path} since {since_utc.isoformat()} "
        f"(max {max_wait_seconds}s, every {poll_interval_seconds}s)"
    )

    while not deadline.expired():
        attempt += 1
        try:
            found = await loop.run_in_executor(
                None, has_confirmation_line, log_path, marker, since_utc
            )
        except OSError as e:
            logger.warning(f"Confirmation check attempt {attempt} failed: {e}")
            found = False

        if found:
            logger.info(f"Confirmation '{marker}' found after {deadline.elapsed:.1f}s")
            return True

        logger.debug(f"Confirmation attempt {attempt}: '{marker}' not found yet")

        if await pause(poll_interval_seconds, cancel_event):
            logger.info(f"Confirmation wait for '{marker}' cancelled")
            return False

    logger.warning(f"Confirmation wait for '{marker}' timed out after {max_wait_seconds}s")
    return False

"""
Confirmation of host-side actions through the host's append-only log.
"""

from .waiter import (
    READ_IN_MARKER,
    WRITE_OUT_MARKER,
    DEFAULT_MAX_WAIT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    find_confirmation,
    has_confirmation_line,
    parse_log_timestamp,
    wait_for_confirmation,
)

__all__ = [
    "READ_IN_MARKER",
    "WRITE_OUT_MARKER",
    "DEFAULT_MAX_WAIT_SECONDS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "find_confirmation",
    "has_confirmation_line",
    "parse_log_timestamp",
    "wait_for_confirmation",
]

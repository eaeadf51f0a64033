"""
SharedTool Licensing - Coordination Rules

Pure, storage-free transitions on a loaded LicenseRecord, plus the status
projection shown to users.

HOLD WINDOW:
------------
A confirmed read-in or write-out holds the license for HOLD_DURATION.
Inside the window only the user of the latest activity may use it again;
everyone else waits it out. The hold is advisory: nothing stops a second
writer, the status only tells them not to.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from .license_model import LicenseRecord, equals_ignore_case
from .license_store import (
    ACTION_READ_IN,
    ACTION_WRITE_OUT,
    EMPTY_FIELD,
    format_datetime,
)


HOLD_DURATION = timedelta(hours=4)

ACTIVITY_NO_DATA = "NO DATA"
NO_LOGINS = "FREE"


def login(record: LicenseRecord, user: str, time: datetime) -> None:
    record.add_or_update_login(user, time)


def logout(record: LicenseRecord, user: str) -> None:
    record.remove_login(user)


def read_in(record: LicenseRecord, user: str, time: datetime) -> None:
    """Record a confirmed read-in and restart the hold window."""
    record.read_user = user
    record.read_time = time
    record.next_usable = time + HOLD_DURATION


def write_out(record: LicenseRecord, user: str, time: datetime) -> None:
    """Record a confirmed write-out and restart the hold window."""
    record.write_user = user
    record.write_time = time
    record.next_usable = time + HOLD_DURATION


def latest_activity(
    record: LicenseRecord,
) -> Tuple[str, Optional[str], Optional[datetime]]:
    """
    Pick the most recent of read-in and write-out.

    Read-in wins only when strictly later than write-out; a lone value wins.

    Returns:
        (activity name, activity user, activity time); NO DATA with
        user and time None when neither happened
    """
    if record.read_time is not None and (
        record.write_time is None or record.read_time > record.write_time
    ):
        return ACTION_READ_IN, record.read_user, record.read_time

    if record.write_time is not None:
        return ACTION_WRITE_OUT, record.write_user, record.write_time

    return ACTIVITY_NO_DATA, None, None


def is_usable(record: LicenseRecord, now: datetime, current_user: str) -> bool:
    """
    Whether current_user may use the license at `now`.

    True past the hold window, and always for the user of the latest
    activity.
    """
    is_after_hold = record.next_usable is None or now >= record.next_usable

    _, activity_user, _ = latest_activity(record)
    is_current_holder = equals_ignore_case(activity_user, current_user)

    return is_after_hold or is_current_holder


def format_status(
    record: LicenseRecord,
    now: datetime,
    current_user: str,
) -> Tuple[str, bool]:
    """
    Build the one-line status of a license for a user.

    Format:
        {id} ({logins|FREE}) - {ACTIVITY} ({user}) {time} - USABLE {next|-}

    The "({user}) " part is left out for NO DATA, whose time is `now`.

    Returns:
        (status text, whether current_user may use the license now)
    """
    activity, activity_user, activity_time = latest_activity(record)

    users = ", ".join(record.login_users) if record.logins else NO_LOGINS
    user_part = f"({activity_user or EMPTY_FIELD}) " if activity != ACTIVITY_NO_DATA else ""
    shown_time = format_datetime(activity_time or now)

    text = (
        f"{record.license_id} ({users}) - {activity} {user_part}{shown_time}"
        f" - USABLE {format_datetime(record.next_usable)}"
    )

    return text, is_usable(record, now, current_user)

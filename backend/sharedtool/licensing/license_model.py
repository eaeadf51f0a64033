"""
SharedTool Licensing - License Record Model

In-memory state of one shared license as kept in the license file:
who is logged in, who read the model in last, who wrote it out last,
and until when the license is considered held.

Records are plain mutable dataclasses. They never touch storage;
the file store loads and rewrites them, the rules mutate them.

INVARIANTS:
-----------
- At most one login entry per user (case-insensitive match).
- next_usable is only ever recomputed by the rules (read-in / write-out
  time + hold duration), never edited on its own.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


def equals_ignore_case(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive comparison of user names and license ids. Empty values never match."""
    if not a or not b:
        return False
    return a.casefold() == b.casefold()


@dataclass
class LoginEntry:
    """One logged-in user and the time of their (latest) login."""

    user: str
    time: datetime


@dataclass
class LicenseRecord:
    """
    Mutable state of a single license.

    Attributes:
        license_id: Opaque license token (usually contains an '@')
        logins: Logged-in users, unique by user name (case-insensitive)
        read_user: User of the last confirmed read-in
        read_time: Time of the last confirmed read-in
        write_user: User of the last confirmed write-out
        write_time: Time of the last confirmed write-out
        next_usable: Instant before which the license is held
    """

    license_id: str
    logins: List[LoginEntry] = field(default_factory=list)
    read_user: Optional[str] = None
    read_time: Optional[datetime] = None
    write_user: Optional[str] = None
    write_time: Optional[datetime] = None
    next_usable: Optional[datetime] = None

    def add_or_update_login(self, user: str, time: datetime) -> None:
        """
        Record a login for a user.

        Updates the existing entry's time when the user is already logged
        in, appends a new entry otherwise. Empty user names are ignored.
        """
        if not user:
            return

        for entry in self.logins:
            if equals_ignore_case(entry.user, user):
                entry.time = time
                return

        self.logins.append(LoginEntry(user=user, time=time))

    def remove_login(self, user: str) -> None:
        """Remove every login entry of a user. No-op when absent."""
        if not user:
            return

        remaining = [entry for entry in self.logins if not equals_ignore_case(entry.user, user)]
        if len(remaining) != len(self.logins):
            self.logins[:] = remaining

    @property
    def login_users(self) -> List[str]:
        return [entry.user for entry in self.logins]

    @property
    def last_login_time(self) -> Optional[datetime]:
        """Time of the most recently updated login, or None without logins."""
        if not self.logins:
            return None
        return max(entry.time for entry in self.logins)

    def matches(self, license_id: str) -> bool:
        return equals_ignore_case(self.license_id, license_id)

    def __str__(self) -> str:
        return f"LicenseRecord({self.license_id}, logins={len(self.logins)})"

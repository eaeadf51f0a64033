"""
Coordinator result models.

Every user action ends in an ActionOutcome instead of an exception, so the
presentation layer only ever renders a status and a message.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActionStatus(str, Enum):
    """How a coordinator action ended."""

    COMMITTED = "committed"  # License file updated
    SKIPPED = "skipped"  # Nothing to do (already done, cancelled, not logged in)
    NOT_FOUND = "not_found"  # No license in the session log (yet)
    NOT_CONNECTED = "not_connected"  # No shared host session
    TIMED_OUT = "timed_out"  # Host never confirmed; nothing written
    FAILED = "failed"  # Macro launch or license file failure


class ActionOutcome(BaseModel):
    """Result of one coordinator action."""

    model_config = ConfigDict(extra="forbid")

    action: str
    status: ActionStatus
    license_id: Optional[str] = None
    user: Optional[str] = None
    time: Optional[datetime] = None
    message: str = ""

    @property
    def committed(self) -> bool:
        return self.status == ActionStatus.COMMITTED


class LicenseStatusView(BaseModel):
    """One rendered status line of a license for a given user."""

    model_config = ConfigDict(extra="forbid")

    license_id: str
    text: str
    usable: bool

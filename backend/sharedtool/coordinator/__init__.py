"""
Coordinator: runs login, read-in, write-out, logout and check for one user.
"""

from .models import ActionOutcome, ActionStatus, LicenseStatusView
from .service import ACTION_LOG_OUT, LicenseCoordinator, license_statuses

__all__ = [
    "ActionOutcome",
    "ActionStatus",
    "LicenseStatusView",
    "ACTION_LOG_OUT",
    "LicenseCoordinator",
    "license_statuses",
]

"""
SharedTool Licensing - Shared License Coordination

Keeps one human-readable text file as the single source of truth for who
uses which shared license, and when the license becomes free again.

Principles:
- The text file is the only shared state (no server, no database)
- Parsing is forgiving, writing is not
- Holds are advisory: the status tells users to wait, nothing forces them

What this module will NEVER do:
- Lock the file at OS level
- Guarantee exclusivity between concurrent writers
- Record a read-in or write-out that was not confirmed
"""

from .license_model import (
    LicenseRecord,
    LoginEntry,
    equals_ignore_case,
)

from .license_store import (
    LicenseFileStore,
    DATE_FORMAT,
    load_all,
    load_or_create,
    save,
)

from .license_rules import (
    HOLD_DURATION,
    login,
    logout,
    read_in,
    write_out,
    format_status,
    is_usable,
)

from .errors import (
    LicensingError,
    LicenseLoadError,
    LicenseSaveError,
)

__all__ = [
    # Model
    "LicenseRecord",
    "LoginEntry",
    "equals_ignore_case",
    # Store
    "LicenseFileStore",
    "DATE_FORMAT",
    "load_all",
    "load_or_create",
    "save",
    # Rules
    "HOLD_DURATION",
    "login",
    "logout",
    "read_in",
    "write_out",
    "format_status",
    "is_usable",
    # Errors
    "LicensingError",
    "LicenseLoadError",
    "LicenseSaveError",
]

"""
Host session boundary: discovery of the user's license, host adapters,
and the wait for a shared session.
"""

from .models import DiscoveredLicense

from .discovery import (
    DEFAULT_LOG_PREFIX,
    DEFAULT_SESSION_MARKER,
    discover_license,
    extract_license_id,
    find_user_log,
    normalize_user_name,
)

from .host import (
    CONFIRMATION_LOG_RELATIVE,
    CommandMacroRunner,
    DirectoryHostSession,
    HostSession,
    MacroRunner,
    confirmation_log_path,
    current_os_user,
)

from .connection import (
    probe_shared_session,
    require_shared_session,
    wait_for_shared_session,
)

from .errors import (
    SessionError,
    SessionNotConnectedError,
    SharedSessionRequiredError,
)

__all__ = [
    # Models
    "DiscoveredLicense",
    # Discovery
    "DEFAULT_LOG_PREFIX",
    "DEFAULT_SESSION_MARKER",
    "discover_license",
    "extract_license_id",
    "find_user_log",
    "normalize_user_name",
    # Host
    "CONFIRMATION_LOG_RELATIVE",
    "CommandMacroRunner",
    "DirectoryHostSession",
    "HostSession",
    "MacroRunner",
    "confirmation_log_path",
    "current_os_user",
    # Connection
    "probe_shared_session",
    "require_shared_session",
    "wait_for_shared_session",
    # Errors
    "SessionError",
    "SessionNotConnectedError",
    "SharedSessionRequiredError",
]

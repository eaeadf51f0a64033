"""
SharedTool settings.

Resolution Order:
1. Defaults below
2. Local JSON file (--settings or SHAREDTOOL_SETTINGS_FILE), if given
3. SHAREDTOOL_<FIELD> environment variables, e.g.
   SHAREDTOOL_LICENSE_FILE=Z:\\Shared\\licenses.txt

Macro commands given through the environment are split shell-style.
Invalid files or values fail loudly with SettingsError.
"""

import json
import logging
import os
import shlex
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


ENV_PREFIX = "SHAREDTOOL_"
ENV_SETTINGS_FILE = "SHAREDTOOL_SETTINGS_FILE"

_COMMAND_FIELDS = ("read_in_command", "write_out_command")


class SettingsError(Exception):
    """Settings file or override is invalid."""

    pass


class SharedToolSettings(BaseModel):
    """All tunables of SharedTool. Paths may be absolute or relative to cwd."""

    model_config = ConfigDict(extra="forbid")

    # ==================== LICENSE FILE ====================
    license_file: Path = Field(
        default_factory=lambda: Path.home() / ".sharedtool" / "licenses.txt",
        description="Shared license text file (usually on a network drive)",
    )

    # ==================== SESSION DISCOVERY ====================
    host_log_dir: Path = Path("C:/TeklaStructuresModels")
    host_log_prefix: str = "TeklaStructures_"
    session_marker: str = "UserInfo"

    # ==================== CONFIRMATION ====================
    confirmation_log: Path = Field(
        default=Path("logs") / "modelsharing.log",
        description="Model-sharing log, relative to the session storage path",
    )
    read_in_marker: str = "Read-in result: OK."
    write_out_marker: str = "WriteOut OK"
    read_in_command: List[str] = Field(default_factory=list)
    write_out_command: List[str] = Field(default_factory=list)
    confirmation_timeout_seconds: float = Field(default=300, gt=0)
    confirmation_poll_seconds: float = Field(default=5, gt=0)
    confirmation_slack_minutes: float = Field(default=5, ge=0)

    # ==================== HOST CONNECTION ====================
    connection_timeout_seconds: float = Field(default=300, gt=0)
    connection_poll_seconds: float = Field(default=5, gt=0)
    session_poll_seconds: float = Field(
        default=5, gt=0, description="Presence check interval while logged in"
    )

    # ==================== AUTO LOGIN ====================
    auto_login_timeout_seconds: float = Field(default=300, gt=0)
    auto_login_poll_seconds: float = Field(default=5, gt=0)

    # ==================== DEBUG LOG ====================
    debug_log_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "SharedTool"
    )


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    for name in SharedToolSettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is None:
            continue
        overrides[name] = shlex.split(value) if name in _COMMAND_FIELDS else value

    return overrides


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise SettingsError(f"Settings file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SettingsError(f"Invalid settings file {path}: {e}") from e
    except OSError as e:
        raise SettingsError(f"Cannot read settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")
    return data


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SharedToolSettings:
    """
    Resolve settings from file and environment.

    Args:
        path: Optional JSON settings file (overrides SHAREDTOOL_SETTINGS_FILE)
        environ: Environment mapping (defaults to os.environ)

    Raises:
        SettingsError: If the file or any value is invalid
    """
    environ = os.environ if environ is None else environ

    data: Dict[str, Any] = {}
    settings_file = path or environ.get(ENV_SETTINGS_FILE)
    if settings_file:
        data.update(_load_file(Path(settings_file)))
        logger.info(f"Settings loaded from file: {settings_file}")

    data.update(_env_overrides(environ))

    try:
        return SharedToolSettings(**data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings: {e}") from e


_default_settings: Optional[SharedToolSettings] = None


def get_settings() -> SharedToolSettings:
    """Process-wide settings, resolved on first use."""
    global _default_settings
    if _default_settings is None:
        _default_settings = load_settings()
    return _default_settings

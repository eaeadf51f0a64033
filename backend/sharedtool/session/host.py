"""
Host application adapters.

SharedTool never talks to the host CAD application directly. It needs
three answers (is a session connected, is it shared, where is it stored)
and one action (run the host's read-in / write-out macro).

HostSession is the query surface; any object with these three methods
works. DirectoryHostSession answers from the filesystem alone: a shared
model directory exists and carries the host's model-sharing log.
"""

import getpass
import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Union

logger = logging.getLogger(__name__)


# Relative location of the model-sharing log inside a session's storage
CONFIRMATION_LOG_RELATIVE = Path("logs") / "modelsharing.log"

MacroRunner = Callable[[], None]


class HostSession(Protocol):
    """Query surface of the host application session."""

    def is_connected(self) -> bool:
        ...

    def is_shared(self) -> bool:
        ...

    def storage_path(self) -> Optional[Path]:
        ...


def current_os_user() -> str:
    """Name of the OS account running SharedTool."""
    return os.environ.get("USERNAME") or getpass.getuser()


def confirmation_log_path(
    storage_path: Union[str, Path],
    relative: Union[str, Path] = CONFIRMATION_LOG_RELATIVE,
) -> Path:
    """Model-sharing log of a session stored at storage_path."""
    return Path(storage_path) / relative


class DirectoryHostSession:
    """
    Host session backed by a model directory on disk.

    Connected when the directory exists; shared when the model-sharing
    log exists inside it.
    """

    def __init__(
        self,
        storage_path: Optional[Union[str, Path]],
        confirmation_log: Union[str, Path] = CONFIRMATION_LOG_RELATIVE,
    ):
        self._storage_path = Path(storage_path) if storage_path else None
        self._confirmation_log = Path(confirmation_log)

    def is_connected(self) -> bool:
        return self._storage_path is not None and self._storage_path.is_dir()

    def is_shared(self) -> bool:
        if not self.is_connected():
            return False
        return confirmation_log_path(self._storage_path, self._confirmation_log).is_file()

    def storage_path(self) -> Optional[Path]:
        return self._storage_path

    def __repr__(self) -> str:
        return f"DirectoryHostSession({self._storage_path})"


class CommandMacroRunner:
    """
    Triggers a host macro by launching a configured command.

    The command is started and not waited for: completion is proven
    later by the confirmation log, not by the exit code. The handle is
    kept so the owner can reap the process once the wait is over.
    """

    def __init__(self, command: Optional[Sequence[str]], name: str = "macro"):
        self.command = list(command) if command else []
        self.name = name
        self.process: Optional[subprocess.Popen] = None

    def __call__(self) -> None:
        if not self.command:
            logger.warning(f"No command configured for {self.name}; waiting for the host only")
            return

        self.reap()
        logger.info(f"Launching {self.name}: {' '.join(self.command)}")
        self.process = subprocess.Popen(self.command)

    def reap(self) -> Optional[int]:
        """
        Collect the launched process if it has exited.

        Returns:
            Exit code, or None when nothing was launched or it still runs
        """
        if self.process is None:
            return None

        returncode = self.process.poll()
        if returncode is None:
            logger.debug(f"{self.name} still running (pid {self.process.pid})")
            return None

        logger.debug(f"{self.name} exited with code {returncode}")
        self.process = None
        return returncode

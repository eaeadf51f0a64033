"""
Private snapshots of externally written log files.

The host application keeps its logs open (sometimes exclusively) and keeps
appending to them. Reading them in place races the writer, so every reader
copies the log to a private temporary file first and scans the copy.

The temporary copy is always deleted, whatever happens while scanning it.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "sharedtool_"


def snapshot_log(log_path: Union[str, Path]) -> Optional[Path]:
    """
    Copy a log file to a new private temporary file.

    Returns:
        Path of the copy, or None if the log is missing or cannot be copied
    """
    log_path = Path(log_path)
    if not log_path.is_file():
        logger.debug(f"Log snapshot skipped, file missing: {log_path}")
        return None

    fd, temp_name = tempfile.mkstemp(prefix=SNAPSHOT_PREFIX, suffix=".log")
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        shutil.copyfile(log_path, temp_path)
    except OSError as e:
        logger.warning(f"Log snapshot failed for {log_path}: {e}")
        _discard(temp_path)
        return None

    logger.debug(f"Log snapshot {log_path} -> {temp_path}")
    return temp_path


@contextmanager
def log_snapshot(log_path: Union[str, Path]) -> Iterator[Optional[Path]]:
    """
    Context manager yielding a temporary copy of a log (or None).

    Usage:
        with log_snapshot(path) as copy:
            if copy is not None:
                scan(copy)
    """
    temp_path = snapshot_log(log_path)
    try:
        yield temp_path
    finally:
        if temp_path is not None:
            _discard(temp_path)


def read_log_lines(log_path: Union[str, Path]) -> Optional[List[str]]:
    """
    Read all lines of a log through a private snapshot.

    Host logs are not guaranteed to be UTF-8; undecodable bytes are replaced.

    Returns:
        The lines, or None if the log is missing or could not be copied
    """
    with log_snapshot(log_path) as copy:
        if copy is None:
            return None
        with open(copy, "r", encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to delete log snapshot {path}: {e}")

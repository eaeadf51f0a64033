"""
Per-run debug log and startup diagnostics.

SharedTool mostly runs hidden, launched by the host application, so there is
no console to read. Every run writes its own debug file:

    <debug_log_dir>/debug_<YYYYmmdd_HHMMSS>_<user>.txt

with one "[timestamp] [T<thread>] message" line per record and full
tracebacks for exceptions. Failure to create the file never stops the tool.
"""

import logging
import os
import platform
import struct
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


PACKAGE_LOGGER = "sharedtool"

DEBUG_FORMAT = "[%(asctime)s.%(msecs)03d] [T%(thread)d] %(levelname)s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Host environment variables worth recording on startup
HOST_ENV_VARS = ("XSDATADIR", "XSBIN")


def debug_log_path(debug_dir: Union[str, Path], user: str, now: Optional[datetime] = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return Path(debug_dir) / f"debug_{stamp}_{user}.txt"


def configure_debug_log(
    debug_dir: Union[str, Path],
    user: str,
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """
    Attach a per-run DEBUG file handler to the package logger.

    Returns:
        Path of the debug file, or None if it could not be created
    """
    path = debug_log_path(debug_dir, user, now)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Debug log disabled, cannot create {path}: {e}")
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(handler)
    return path


def configure_console_log(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=CONSOLE_FORMAT,
        datefmt="%H:%M:%S",
    )


def dump_diagnostics() -> None:
    """Log interpreter, platform and host environment details."""
    logger.debug(
        f"Diagnostics: python={sys.version.split()[0]} "
        f"bits={struct.calcsize('P') * 8} "
        f"platform={platform.platform()} pid={os.getpid()}"
    )
    for name in HOST_ENV_VARS:
        logger.debug(f"Diagnostics: {name}={os.environ.get(name, '(null)')}")

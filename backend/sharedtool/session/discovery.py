"""
Session discovery.

Finds the license the current user is working under by scraping the host
application's per-user session log.

Discovery order for the log file:
1. <log_dir>/<prefix><user>.log
2. <log_dir>/<prefix><normalized user>.log (diacritics stripped)
3. Most recently modified <log_dir>/<prefix>*.log

The log is read through a private snapshot and scanned from the end
backward for the newest line containing the session marker (UserInfo).
The license id is the first whitespace-separated token on that line that
contains '@' and is not an http(s) URL.

A missing log or a log without such a line is a normal "not found" result
(None), never an exception.
"""

import logging
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..log_snapshot import read_log_lines
from .models import DiscoveredLicense

logger = logging.getLogger(__name__)


DEFAULT_LOG_PREFIX = "TeklaStructures_"
DEFAULT_SESSION_MARKER = "UserInfo"

# Letters NFKD does not decompose into base letter + combining mark
_LETTER_FOLDS = str.maketrans({
    "ł": "l", "Ł": "L",
    "ø": "o", "Ø": "O",
    "đ": "d", "Đ": "D",
    "ß": "ss",
})


def normalize_user_name(name: str) -> str:
    """
    Strip diacritics from a user name ("Łukasz Żółć" -> "Lukasz Zolc").

    Host logs are named after the ASCII form of the account name on some
    machines, so both forms are tried during discovery.
    """
    if not name:
        return name

    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return unicodedata.normalize("NFC", stripped).translate(_LETTER_FOLDS)


def find_user_log(
    log_dir: Union[str, Path],
    user: str,
    prefix: str = DEFAULT_LOG_PREFIX,
) -> Optional[Path]:
    """
    Locate the user's host session log.

    Returns:
        Path of the log, or None if no candidate exists
    """
    log_dir = Path(log_dir)

    candidates = [log_dir / f"{prefix}{user}.log"]
    normalized = normalize_user_name(user)
    if normalized != user:
        candidates.append(log_dir / f"{prefix}{normalized}.log")

    for candidate in candidates:
        if candidate.is_file():
            logger.debug(f"Session log found: {candidate}")
            return candidate

    if not log_dir.is_dir():
        logger.debug(f"Session log directory missing: {log_dir}")
        return None

    try:
        logs = [p for p in log_dir.glob(f"{prefix}*.log") if p.is_file()]
        newest = max(logs, key=lambda p: p.stat().st_mtime, default=None)
    except OSError as e:
        logger.warning(f"Session log fallback scan failed in {log_dir}: {e}")
        return None

    if newest is None:
        logger.debug(f"No {prefix}*.log files in {log_dir}")
    else:
        logger.debug(f"Session log fallback to newest: {newest}")
    return newest


def extract_license_id(
    lines: Iterable[str],
    marker: str = DEFAULT_SESSION_MARKER,
) -> Optional[str]:
    """
    Extract the license id from the newest session marker line.

    Marker lines with fewer than three tokens, or without a license token,
    are passed over in favour of older ones.
    """
    needle = marker.casefold()

    for line in reversed(list(lines)):
        if needle not in line.casefold():
            continue

        tokens = line.split()
        if len(tokens) < 3:
            continue

        for token in tokens:
            if "@" in token and not token.lower().startswith("http"):
                return token

        logger.debug(f"Session marker line without license token: {line!r}")

    return None


def discover_license(
    log_dir: Union[str, Path],
    user: str,
    prefix: str = DEFAULT_LOG_PREFIX,
    marker: str = DEFAULT_SESSION_MARKER,
    now: Optional[datetime] = None,
) -> Optional[DiscoveredLicense]:
    """
    Find the license the user is currently logged in with.

    Args:
        log_dir: Directory holding the host's per-user logs
        user: Current OS user name
        prefix: Log file name prefix
        marker: Token identifying the session line
        now: Discovery time recorded as login time (defaults to local now)

    Returns:
        DiscoveredLicense, or None if nothing was found
    """
    log_path = find_user_log(log_dir, user, prefix)
    if log_path is None:
        return None

    lines: Optional[List[str]]
    try:
        lines = read_log_lines(log_path)
    except OSError as e:
        logger.warning(f"Failed to read session log {log_path}: {e}")
        return None

    if lines is None:
        return None

    license_id = extract_license_id(lines, marker)
    if license_id is None:
        logger.debug(f"No license found in {log_path} ({len(lines)} lines)")
        return None

    discovered = DiscoveredLicense(
        license_id=license_id,
        login_time=now or datetime.now(),
        log_path=str(log_path),
    )
    logger.info(f"License discovered: {license_id} (from {log_path})")
    return discovered

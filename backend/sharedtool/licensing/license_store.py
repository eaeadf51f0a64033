"""
SharedTool Licensing - License File Store

The only component that reads or writes the shared license file.

File Format (UTF-8, one block per license, blocks separated by a blank line):
----------------------------------------------------------------------------
    <license-id>
    LOG IN - <user1, user2, ...|-> - <YYYY-MM-DD HH:MM|->
    READ IN - <user|-> - <YYYY-MM-DD HH:MM|->
    WRITE OUT - <user|-> - <YYYY-MM-DD HH:MM|->
    NEXT USABLE - <YYYY-MM-DD HH:MM|->

Parsing is best-effort: unknown or malformed lines are skipped so that older
tools keep reading files written by newer ones. Writing is never best-effort:
every save reloads the full file, merges the one record, and rewrites the
whole file, retrying with exponential backoff while another process holds it.

Save is NOT atomic across processes. A save performed by another process
between our load and our rewrite is lost (last writer wins, per file).

Any non-blank line without a field separator starts a new record, whatever
it looks like. A stray note line typed into the middle of a block becomes a
record of its own and takes over the field lines below it; the next save
writes it back as a full block.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .errors import LicenseLoadError, LicenseSaveError
from .license_model import LicenseRecord


logger = logging.getLogger(__name__)


DATE_FORMAT = "%Y-%m-%d %H:%M"
FIELD_SEPARATOR = " - "
EMPTY_FIELD = "-"

ACTION_LOG_IN = "LOG IN"
ACTION_READ_IN = "READ IN"
ACTION_WRITE_OUT = "WRITE OUT"
ACTION_NEXT_USABLE = "NEXT USABLE"

# Write contention policy
SAVE_MAX_ATTEMPTS = 10
SAVE_INITIAL_DELAY_SECONDS = 0.150
SAVE_MAX_DELAY_SECONDS = 2.0


def parse_datetime(text: str) -> Optional[datetime]:
    """Parse a minute-precision license file timestamp. None if unparseable."""
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT)
    except ValueError:
        return None


def format_datetime(value: Optional[datetime]) -> str:
    """Format a timestamp for the license file ('-' when absent)."""
    if value is None:
        return EMPTY_FIELD
    return value.strftime(DATE_FORMAT)


def _field_or_none(text: str) -> Optional[str]:
    text = text.strip()
    if not text or text == EMPTY_FIELD:
        return None
    return text


# =============================================================================
# Text encoding
# =============================================================================

def parse_records(lines: Iterable[str]) -> List[LicenseRecord]:
    """
    Parse license file lines into records.

    A non-blank line without a field separator starts a new record.
    Field lines are attached to the most recently started record and are
    ignored until a record has started.
    """
    records: List[LicenseRecord] = []
    current: Optional[LicenseRecord] = None

    for raw in lines:
        line = raw.strip()
        if not line:
            continue

        parts = line.split(FIELD_SEPARATOR)

        if len(parts) == 1:
            logger.debug(f"License file: record started by line {line!r}")
            current = LicenseRecord(license_id=line)
            records.append(current)
            continue

        if current is None:
            continue

        action = parts[0].strip().upper()

        if len(parts) == 3:
            when = parse_datetime(parts[2])
            if when is None:
                continue

            if action == ACTION_LOG_IN:
                for user in parts[1].split(","):
                    user = _field_or_none(user)
                    if user:
                        current.add_or_update_login(user, when)
            elif action == ACTION_READ_IN:
                current.read_user = _field_or_none(parts[1])
                current.read_time = when
            elif action == ACTION_WRITE_OUT:
                current.write_user = _field_or_none(parts[1])
                current.write_time = when

        elif len(parts) == 2:
            when = parse_datetime(parts[1])
            if when is not None and action == ACTION_NEXT_USABLE:
                current.next_usable = when

    return records


def render_records(records: Iterable[LicenseRecord]) -> str:
    """Render records as license file text. Records without an id are dropped."""
    out: List[str] = []

    for record in records:
        if not record.license_id:
            continue

        users = ", ".join(record.login_users) if record.logins else EMPTY_FIELD

        out.append(record.license_id)
        out.append(FIELD_SEPARATOR.join(
            [ACTION_LOG_IN, users, format_datetime(record.last_login_time)]
        ))
        out.append(FIELD_SEPARATOR.join(
            [ACTION_READ_IN, record.read_user or EMPTY_FIELD, format_datetime(record.read_time)]
        ))
        out.append(FIELD_SEPARATOR.join(
            [ACTION_WRITE_OUT, record.write_user or EMPTY_FIELD, format_datetime(record.write_time)]
        ))
        out.append(FIELD_SEPARATOR.join(
            [ACTION_NEXT_USABLE, format_datetime(record.next_usable)]
        ))
        out.append("")

    return "\n".join(out) + ("\n" if out else "")


# =============================================================================
# Store
# =============================================================================

class LicenseFileStore:
    """
    File-backed store for all shared licenses.

    The store holds no cached state: every call goes back to the file,
    so any record handed out is a snapshot valid until the next load.
    """

    def __init__(
        self,
        path: Union[str, Path],
        max_attempts: int = SAVE_MAX_ATTEMPTS,
        initial_delay: float = SAVE_INITIAL_DELAY_SECONDS,
        max_delay: float = SAVE_MAX_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the store.

        Args:
            path: Path to the shared license text file
            max_attempts: Write attempts before giving up
            initial_delay: Backoff before the second attempt, in seconds
            max_delay: Upper bound for a single backoff, in seconds
            sleep: Sleep function used between attempts
        """
        self.path = Path(path)
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def load_all(self) -> List[LicenseRecord]:
        """
        Load every record from the license file.

        Returns:
            Records in file order (empty if the file does not exist)

        Raises:
            LicenseLoadError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return []

        try:
            text = self.path.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise LicenseLoadError(f"Failed to read license file {self.path}: {e}") from e

        return parse_records(text.splitlines())

    def load_or_create(self, license_id: str) -> LicenseRecord:
        """Return the stored record for license_id, or a fresh empty one."""
        for record in self.load_all():
            if record.matches(license_id):
                return record

        return LicenseRecord(license_id=license_id)

    def save(self, record: LicenseRecord) -> None:
        """
        Merge one record into the file and rewrite it.

        Reloads the full set, replaces the record with the same id
        (case-insensitive) or appends it, then truncates and rewrites the
        whole file.

        Raises:
            LicenseLoadError: If the current file cannot be read
            LicenseSaveError: If every write attempt failed
        """
        records = self.load_all()

        for index, existing in enumerate(records):
            if existing.matches(record.license_id):
                records[index] = record
                break
        else:
            records.append(record)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_with_retry(render_records(records))

    def _write_with_retry(self, text: str) -> None:
        delay = self.initial_delay

        for attempt in range(1, self.max_attempts + 1):
            try:
                self._write_text(text)
                return
            except OSError as e:
                logger.warning(
                    f"License file save failed (attempt {attempt}/{self.max_attempts}) "
                    f"{self.path}: {e}"
                )
                if attempt == self.max_attempts:
                    break
                self._sleep(delay)
                delay = min(delay * 2, self.max_delay)

        raise LicenseSaveError(self.path, self.max_attempts)

    def _write_text(self, text: str) -> None:
        """Truncate and rewrite the file in a single write."""
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)


# =============================================================================
# Path-based helpers
# =============================================================================

def load_all(path: Union[str, Path]) -> List[LicenseRecord]:
    return LicenseFileStore(path).load_all()


def load_or_create(path: Union[str, Path], license_id: str) -> LicenseRecord:
    return LicenseFileStore(path).load_or_create(license_id)


def save(path: Union[str, Path], record: LicenseRecord) -> None:
    LicenseFileStore(path).save(record)

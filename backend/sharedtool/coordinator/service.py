"""
License coordinator - orchestration of user actions.

Coordinates:
1. Session discovery (which license is this user on?)
2. Host session queries (is a shared session connected, where is it?)
3. Macro dispatch + confirmation wait (did the host really do it?)
4. Rules + file store (record the transition)

Action semantics:
- LOG IN: discovered license, current user, discovery time
- READ IN / WRITE OUT: trigger macro, wait for the host's confirmation,
  then reload the record and commit. No confirmation -> nothing written.
- LOG OUT: remove the current user's login, at most once per coordinator

Failures never escape as exceptions from the public actions: they end as
an ActionOutcome with a status and a message.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from ..confirmation import wait_for_confirmation
from ..licensing import (
    LicenseFileStore,
    LicenseRecord,
    LicensingError,
    equals_ignore_case,
    format_status,
)
from ..licensing import license_rules as rules
from ..licensing.license_store import (
    ACTION_LOG_IN,
    ACTION_READ_IN,
    ACTION_WRITE_OUT,
    format_datetime,
)
from ..polling import Deadline, pause
from ..session import (
    CommandMacroRunner,
    DiscoveredLicense,
    HostSession,
    MacroRunner,
    SessionError,
    confirmation_log_path,
    current_os_user,
    discover_license,
    probe_shared_session,
    require_shared_session,
    wait_for_shared_session,
)
from ..settings import SharedToolSettings
from .models import ActionOutcome, ActionStatus, LicenseStatusView

logger = logging.getLogger(__name__)


ACTION_LOG_OUT = "LOG OUT"

Transition = Callable[[LicenseRecord, str, datetime], None]


def license_statuses(
    records: List[LicenseRecord],
    now: datetime,
    user: str,
) -> List[LicenseStatusView]:
    """Render every record as a status line for `user` at `now`."""
    views = []
    for record in records:
        text, usable = format_status(record, now, user)
        views.append(LicenseStatusView(license_id=record.license_id, text=text, usable=usable))
    return views


class LicenseCoordinator:
    """
    Runs SharedTool actions for one user and one host session.

    The coordinator owns a cancel event tied to its lifetime: close()
    abandons every in-flight wait and logs the user out if this coordinator
    logged them in.
    """

    def __init__(
        self,
        settings: SharedToolSettings,
        host: HostSession,
        read_in_macro: Optional[MacroRunner] = None,
        write_out_macro: Optional[MacroRunner] = None,
        store: Optional[LicenseFileStore] = None,
        user: Optional[str] = None,
        now_local: Optional[Callable[[], datetime]] = None,
        now_utc: Optional[Callable[[], datetime]] = None,
        discover: Optional[Callable[[], Optional[DiscoveredLicense]]] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            settings: Resolved SharedTool settings
            host: Host session query surface
            read_in_macro: Triggers the host read-in (default: configured command)
            write_out_macro: Triggers the host write-out (default: configured command)
            store: License file store (default: settings.license_file)
            user: Acting user (default: current OS user)
            now_local: Local wall clock used for license file times
            now_utc: UTC clock used for confirmation windows
            discover: Session discovery override (default: host session logs)
        """
        self.settings = settings
        self.host = host
        self.read_in_macro = read_in_macro or CommandMacroRunner(
            settings.read_in_command, "read-in macro"
        )
        self.write_out_macro = write_out_macro or CommandMacroRunner(
            settings.write_out_command, "write-out macro"
        )
        self.store = store or LicenseFileStore(settings.license_file)
        self.user = user or current_os_user()
        self._now_local = now_local or datetime.now
        self._now_utc = now_utc or (lambda: datetime.now(timezone.utc))
        self._discover = discover or self._discover_from_host_logs

        self._cancel = asyncio.Event()
        self._auto_login_started = False
        self._logged_in_license: Optional[str] = None
        self._logout_done = False

    # =========================================================================
    # Queries
    # =========================================================================

    def _discover_from_host_logs(self) -> Optional[DiscoveredLicense]:
        return discover_license(
            self.settings.host_log_dir,
            self.user,
            prefix=self.settings.host_log_prefix,
            marker=self.settings.session_marker,
            now=self._now_local(),
        )

    def discover(self) -> Optional[DiscoveredLicense]:
        """Discovered license of the current user, or None."""
        try:
            return self._discover()
        except OSError as e:
            logger.warning(f"Session discovery failed: {e}")
            return None

    def check(self) -> List[LicenseStatusView]:
        """
        Status of every license for the current user.

        Raises:
            LicenseLoadError: If the license file cannot be read
        """
        return license_statuses(self.store.load_all(), self._now_local(), self.user)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # =========================================================================
    # Host connection
    # =========================================================================

    async def wait_for_session(self) -> Optional[Path]:
        """Wait for a shared host session; None on timeout or close()."""
        return await wait_for_shared_session(
            self.host,
            max_wait_seconds=self.settings.connection_timeout_seconds,
            poll_interval_seconds=self.settings.connection_poll_seconds,
            cancel_event=self._cancel,
        )

    async def wait_for_disconnect(self) -> None:
        """Return once the shared session is gone or close() was called."""
        while probe_shared_session(self.host) is not None:
            if await pause(self.settings.session_poll_seconds, self._cancel):
                return
        logger.info("Shared session disconnected")

    # =========================================================================
    # Login / logout
    # =========================================================================

    async def auto_login(self) -> ActionOutcome:
        """
        Watch the session log and log the user in once a license shows up.

        Only one watcher runs per coordinator; a second call is skipped.
        """
        if self._auto_login_started:
            return self._outcome(ACTION_LOG_IN, ActionStatus.SKIPPED,
                                 message="Auto-login watcher already running")
        self._auto_login_started = True

        deadline = Deadline(self.settings.auto_login_timeout_seconds)
        last_error: Optional[str] = None
        loop = 0

        while not deadline.expired():
            loop += 1
            logger.debug(f"Auto-login loop #{loop} elapsed={deadline.elapsed:.0f}s")

            discovered = self.discover()
            if discovered is not None:
                try:
                    return self.login(discovered)
                except LicensingError as e:
                    last_error = str(e)
                    logger.exception("Auto-login could not update the license file")

            if await pause(self.settings.auto_login_poll_seconds, self._cancel):
                return self._outcome(ACTION_LOG_IN, ActionStatus.SKIPPED,
                                     message="Auto-login cancelled")

        if last_error:
            return self._outcome(ACTION_LOG_IN, ActionStatus.FAILED, message=last_error)
        return self._outcome(
            ACTION_LOG_IN,
            ActionStatus.NOT_FOUND,
            message=f"No {self.settings.session_marker} entry within "
                    f"{self.settings.auto_login_timeout_seconds:.0f}s",
        )

    def login(self, discovered: DiscoveredLicense) -> ActionOutcome:
        """
        Log the current user in on a discovered license.

        Raises:
            LicensingError: If the license file cannot be read or rewritten
        """
        record = self.store.load_or_create(discovered.license_id)
        rules.login(record, self.user, discovered.login_time)
        self.store.save(record)

        self._logged_in_license = record.license_id
        self._logout_done = False
        return self._outcome(
            ACTION_LOG_IN, ActionStatus.COMMITTED,
            license_id=record.license_id, time=discovered.login_time,
        )

    def logout(self) -> ActionOutcome:
        """Remove the current user's login. Runs at most once per coordinator."""
        if self._logout_done:
            return self._outcome(ACTION_LOG_OUT, ActionStatus.SKIPPED,
                                 message="Already logged out")

        license_id = self._logged_in_license
        if license_id is None:
            discovered = self.discover()
            if discovered is None:
                self._logout_done = True
                return self._outcome(ACTION_LOG_OUT, ActionStatus.NOT_FOUND,
                                     message="No license found in the session log")
            license_id = discovered.license_id

        try:
            record = self.store.load_or_create(license_id)
            if not any(equals_ignore_case(u, self.user) for u in record.login_users):
                self._logout_done = True
                return self._outcome(ACTION_LOG_OUT, ActionStatus.SKIPPED,
                                     license_id=license_id, message="User was not logged in")

            rules.logout(record, self.user)
            self.store.save(record)
        except LicensingError as e:
            logger.exception(f"Logout from {license_id} failed")
            return self._outcome(ACTION_LOG_OUT, ActionStatus.FAILED,
                                 license_id=license_id, message=str(e))

        self._logout_done = True
        return self._outcome(ACTION_LOG_OUT, ActionStatus.COMMITTED, license_id=license_id)

    # =========================================================================
    # Read-in / write-out
    # =========================================================================

    async def read_in(self) -> ActionOutcome:
        return await self._confirmed_action(
            ACTION_READ_IN, self.settings.read_in_marker, self.read_in_macro, rules.read_in
        )

    async def write_out(self) -> ActionOutcome:
        return await self._confirmed_action(
            ACTION_WRITE_OUT, self.settings.write_out_marker, self.write_out_macro, rules.write_out
        )

    async def _confirmed_action(
        self,
        action: str,
        marker: str,
        macro: MacroRunner,
        transition: Transition,
    ) -> ActionOutcome:
        discovered = self.discover()
        if discovered is None:
            return self._outcome(action, ActionStatus.NOT_FOUND,
                                 message="No license found in the session log")
        license_id = discovered.license_id

        try:
            storage_path = require_shared_session(self.host)
        except SessionError as e:
            return self._outcome(action, ActionStatus.NOT_CONNECTED,
                                 license_id=license_id, message=str(e))

        log_path = confirmation_log_path(storage_path, self.settings.confirmation_log)
        since = self._now_utc() - timedelta(minutes=self.settings.confirmation_slack_minutes)

        try:
            macro()
        except OSError as e:
            logger.exception(f"{action}: macro launch failed")
            return self._outcome(action, ActionStatus.FAILED,
                                 license_id=license_id, message=f"Macro launch failed: {e}")

        confirmed = await wait_for_confirmation(
            log_path,
            marker,
            since,
            max_wait_seconds=self.settings.confirmation_timeout_seconds,
            poll_interval_seconds=self.settings.confirmation_poll_seconds,
            cancel_event=self._cancel,
        )
        if isinstance(macro, CommandMacroRunner):
            macro.reap()

        if not confirmed:
            status = ActionStatus.SKIPPED if self.cancelled else ActionStatus.TIMED_OUT
            return self._outcome(action, status, license_id=license_id,
                                 message=f"No '{marker}' confirmation in {log_path}")

        now = self._now_local()
        try:
            record = self.store.load_or_create(license_id)
            transition(record, self.user, now)
            self.store.save(record)
        except LicensingError as e:
            logger.exception(f"{action}: license file update failed")
            return self._outcome(action, ActionStatus.FAILED,
                                 license_id=license_id, message=str(e))

        return self._outcome(action, ActionStatus.COMMITTED, license_id=license_id, time=now)

    # =========================================================================
    # Session lifetime
    # =========================================================================

    async def run_auto_login_session(self) -> ActionOutcome:
        """
        Full auto-login lifecycle.

        Wait for the shared session, log in, stay until the session goes
        away (or close() is called), then log out.
        """
        if await self.wait_for_session() is None:
            return self._outcome(ACTION_LOG_IN, ActionStatus.NOT_CONNECTED,
                                 message="No shared host session")

        outcome = await self.auto_login()
        if not outcome.committed:
            return outcome

        try:
            await self.wait_for_disconnect()
        finally:
            self.close()
        return outcome

    def close(self) -> Optional[ActionOutcome]:
        """
        End the coordinator's session.

        Cancels in-flight waits and logs out once if this coordinator
        logged the user in.
        """
        self._cancel.set()

        if self._logged_in_license is None or self._logout_done:
            return None
        return self.logout()

    def _outcome(
        self,
        action: str,
        status: ActionStatus,
        license_id: Optional[str] = None,
        time: Optional[datetime] = None,
        message: str = "",
    ) -> ActionOutcome:
        if not message and status == ActionStatus.COMMITTED:
            message = f"{action} - {self.user} - {format_datetime(time or self._now_local())}"

        outcome = ActionOutcome(
            action=action,
            status=status,
            license_id=license_id,
            user=self.user,
            time=time,
            message=message,
        )
        log = logger.info if status in (ActionStatus.COMMITTED, ActionStatus.SKIPPED) else logger.warning
        log(f"{action} {status.value}: {license_id or '-'} {message}")
        return outcome

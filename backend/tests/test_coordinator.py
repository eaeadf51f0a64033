"""
Tests for the license coordinator.

These tests verify:
1. READ IN / WRITE OUT are written only after the host confirms them
2. The record is reloaded at commit time (concurrent changes survive)
3. Logout runs at most once and never writes for a user who is not logged in
4. Auto-login polls discovery, commits once, and logs out when the session ends

Every test drives one coordinator through a single asyncio.run, with a
scriptable host, discovery and macro; no host application is involved.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from sharedtool.coordinator import ActionStatus, LicenseCoordinator
from sharedtool.licensing import LicenseFileStore, LicenseRecord, load_all, save
from sharedtool.session import CommandMacroRunner, DiscoveredLicense, confirmation_log_path
from sharedtool.settings import SharedToolSettings


LICENSE_ID = "27000@licserver"
NOW_LOCAL = datetime(2024, 1, 1, 10, 1)
NOW_UTC = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

FRESH_READ_IN = "[2024-01-01 10:00:30] Read-in result: OK."
STALE_READ_IN = "[2024-01-01 09:00:00] Read-in result: OK."
FRESH_WRITE_OUT = "[2024-01-01 10:00:30] WriteOut OK"


class FakeHost:

    def __init__(self, storage: Path, connected=True, shared=True):
        self.storage = storage
        self.connected = connected
        self.shared = shared

    def is_connected(self):
        return self.connected

    def is_shared(self):
        return self.shared

    def storage_path(self):
        return self.storage


class FakeDiscovery:
    """Returns None `misses` times, then the license."""

    def __init__(self, license_id=LICENSE_ID, misses=0):
        self.license_id = license_id
        self.misses = misses
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.license_id is None or self.calls <= self.misses:
            return None
        return DiscoveredLicense(license_id=self.license_id, login_time=NOW_LOCAL, log_path="x.log")


class FakeMacro:
    """Appends the given lines to the confirmation log when triggered."""

    def __init__(self, log_path: Path, *lines: str, before=None):
        self.log_path = log_path
        self.lines = lines
        self.before = before
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.before:
            self.before()
        with open(self.log_path, "a", encoding="utf-8") as f:
            for line in self.lines:
                f.write(line + "\n")


@pytest.fixture
def settings(tmp_path: Path) -> SharedToolSettings:
    return SharedToolSettings(
        license_file=tmp_path / "shared" / "licenses.txt",
        host_log_dir=tmp_path / "host_logs",
        confirmation_timeout_seconds=0.3,
        confirmation_poll_seconds=0.02,
        connection_timeout_seconds=0.3,
        connection_poll_seconds=0.02,
        session_poll_seconds=0.02,
        auto_login_timeout_seconds=0.3,
        auto_login_poll_seconds=0.02,
        debug_log_dir=tmp_path / "debug",
    )


@pytest.fixture
def model_dir(tmp_path: Path) -> Path:
    model = tmp_path / "model"
    log = confirmation_log_path(model)
    log.parent.mkdir(parents=True)
    log.write_text("[2024-01-01 08:00:00] model opened\n", encoding="utf-8")
    return model


def make_coordinator(settings, model_dir, macro=None, host=None, discover=None, **kwargs):
    return LicenseCoordinator(
        settings,
        host or FakeHost(model_dir),
        read_in_macro=macro or FakeMacro(confirmation_log_path(model_dir)),
        write_out_macro=macro or FakeMacro(confirmation_log_path(model_dir)),
        user="alice",
        now_local=lambda: NOW_LOCAL,
        now_utc=lambda: NOW_UTC,
        discover=discover or FakeDiscovery(),
        **kwargs,
    )


# =============================================================================
# Read-in / write-out
# =============================================================================

class TestConfirmedActions:

    def test_read_in_commits_after_confirmation(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_READ_IN)
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.COMMITTED
        assert outcome.message == "READ IN - alice - 2024-01-01 10:01"
        assert macro.calls == 1

        record = load_all(settings.license_file)[0]
        assert record.license_id == LICENSE_ID
        assert record.read_user == "alice"
        assert record.read_time == NOW_LOCAL
        assert record.next_usable == datetime(2024, 1, 1, 14, 1)

    def test_write_out_commits_after_confirmation(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_WRITE_OUT)
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.write_out())

        assert outcome.committed
        record = load_all(settings.license_file)[0]
        assert record.write_user == "alice"
        assert record.read_user is None

    def test_no_confirmation_writes_nothing(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.TIMED_OUT
        assert not settings.license_file.exists()

    def test_stale_confirmation_writes_nothing(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), STALE_READ_IN)
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.TIMED_OUT
        assert not settings.license_file.exists()

    def test_wrong_marker_writes_nothing(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_WRITE_OUT)
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.TIMED_OUT

    def test_no_license_found(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_READ_IN)
        coordinator = make_coordinator(
            settings, model_dir, macro=macro, discover=FakeDiscovery(license_id=None)
        )

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.NOT_FOUND
        assert macro.calls == 0

    def test_unshared_session(self, settings, model_dir):
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_READ_IN)
        coordinator = make_coordinator(
            settings, model_dir, macro=macro, host=FakeHost(model_dir, shared=False)
        )

        outcome = asyncio.run(coordinator.write_out())

        assert outcome.status == ActionStatus.NOT_CONNECTED
        assert macro.calls == 0
        assert not settings.license_file.exists()

    def test_macro_launch_failure(self, settings, model_dir):
        def broken_macro():
            raise FileNotFoundError("host.exe")

        coordinator = make_coordinator(settings, model_dir, macro=broken_macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.FAILED
        assert not settings.license_file.exists()

    def test_commit_reloads_record(self, settings, model_dir):
        def bob_logs_in_meanwhile():
            record = LicenseRecord(license_id=LICENSE_ID)
            record.add_or_update_login("bob", datetime(2024, 1, 1, 10, 0))
            save(settings.license_file, record)

        macro = FakeMacro(
            confirmation_log_path(model_dir), FRESH_READ_IN, before=bob_logs_in_meanwhile
        )
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.committed
        record = load_all(settings.license_file)[0]
        assert record.login_users == ["bob"]
        assert record.read_user == "alice"

    def test_launched_macro_is_reaped_after_wait(self, settings, model_dir, monkeypatch):
        log = confirmation_log_path(model_dir)

        class HostMacroProcess:
            pid = 4242

            def __init__(self, command):
                with open(log, "a", encoding="utf-8") as f:
                    f.write(FRESH_READ_IN + "\n")

            def poll(self):
                return 0

        monkeypatch.setattr("sharedtool.session.host.subprocess.Popen", HostMacroProcess)
        macro = CommandMacroRunner(["host.exe", "-macro", "ReadIn"], "read-in macro")
        coordinator = make_coordinator(settings, model_dir, macro=macro)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.committed
        assert macro.process is None

    def test_store_failure(self, settings, model_dir, monkeypatch):
        store = LicenseFileStore(settings.license_file, max_attempts=2, sleep=lambda s: None)

        def locked(text):
            raise PermissionError("locked")

        monkeypatch.setattr(store, "_write_text", locked)
        macro = FakeMacro(confirmation_log_path(model_dir), FRESH_READ_IN)
        coordinator = make_coordinator(settings, model_dir, macro=macro, store=store)

        outcome = asyncio.run(coordinator.read_in())

        assert outcome.status == ActionStatus.FAILED
        assert "2 attempts" in outcome.message


# =============================================================================
# Login / logout
# =============================================================================

class TestLoginLogout:

    def test_login_then_logout_once(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir)

        login = coordinator.login(coordinator.discover())
        assert login.committed
        assert load_all(settings.license_file)[0].login_users == ["alice"]

        first = coordinator.logout()
        second = coordinator.logout()

        assert first.status == ActionStatus.COMMITTED
        assert second.status == ActionStatus.SKIPPED
        assert load_all(settings.license_file)[0].logins == []

    def test_logout_keeps_other_users(self, settings, model_dir):
        record = LicenseRecord(license_id=LICENSE_ID)
        record.add_or_update_login("bob", NOW_LOCAL)
        record.add_or_update_login("Alice", NOW_LOCAL)
        save(settings.license_file, record)

        outcome = make_coordinator(settings, model_dir).logout()

        assert outcome.committed
        assert load_all(settings.license_file)[0].login_users == ["bob"]

    def test_logout_when_not_logged_in_writes_nothing(self, settings, model_dir):
        outcome = make_coordinator(settings, model_dir).logout()

        assert outcome.status == ActionStatus.SKIPPED
        assert not settings.license_file.exists()

    def test_logout_without_license(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir, discover=FakeDiscovery(license_id=None))

        assert coordinator.logout().status == ActionStatus.NOT_FOUND

    def test_close_logs_out_once(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir)
        coordinator.login(coordinator.discover())

        closing = coordinator.close()

        assert closing.status == ActionStatus.COMMITTED
        assert coordinator.cancelled
        assert coordinator.close() is None
        assert load_all(settings.license_file)[0].logins == []

    def test_close_without_login_writes_nothing(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir)

        assert coordinator.close() is None
        assert not settings.license_file.exists()


# =============================================================================
# Auto-login
# =============================================================================

class TestAutoLogin:

    def test_logs_in_once_license_appears(self, settings, model_dir):
        discovery = FakeDiscovery(misses=3)
        coordinator = make_coordinator(settings, model_dir, discover=discovery)

        async def scenario():
            first = await coordinator.auto_login()
            second = await coordinator.auto_login()
            return first, second

        first, second = asyncio.run(scenario())

        assert first.status == ActionStatus.COMMITTED
        assert first.time == NOW_LOCAL
        assert second.status == ActionStatus.SKIPPED
        assert discovery.calls == 4
        assert load_all(settings.license_file)[0].login_users == ["alice"]

    def test_times_out_without_license(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir, discover=FakeDiscovery(license_id=None))

        outcome = asyncio.run(coordinator.auto_login())

        assert outcome.status == ActionStatus.NOT_FOUND
        assert not settings.license_file.exists()

    def test_store_failure_is_retried_until_timeout(self, settings, model_dir, monkeypatch):
        store = LicenseFileStore(settings.license_file, max_attempts=1)

        def locked(text):
            raise PermissionError("locked")

        monkeypatch.setattr(store, "_write_text", locked)
        coordinator = make_coordinator(settings, model_dir, store=store)

        outcome = asyncio.run(coordinator.auto_login())

        assert outcome.status == ActionStatus.FAILED
        assert "1 attempts" in outcome.message

    def test_full_session_logs_out_on_disconnect(self, settings, model_dir):
        host = FakeHost(model_dir)
        coordinator = make_coordinator(settings, model_dir, host=host)

        async def scenario():
            session = asyncio.ensure_future(coordinator.run_auto_login_session())
            for _ in range(50):
                await asyncio.sleep(0.02)
                if settings.license_file.exists():
                    break
            logged_in = load_all(settings.license_file)[0].login_users
            host.connected = False
            return logged_in, await session

        logged_in, outcome = asyncio.run(scenario())

        assert logged_in == ["alice"]
        assert outcome.status == ActionStatus.COMMITTED
        assert load_all(settings.license_file)[0].logins == []

    def test_full_session_without_host(self, settings, model_dir):
        coordinator = make_coordinator(settings, model_dir, host=FakeHost(model_dir, connected=False))

        outcome = asyncio.run(coordinator.run_auto_login_session())

        assert outcome.status == ActionStatus.NOT_CONNECTED


def test_check_reports_every_license(settings, model_dir):
    record = LicenseRecord(license_id=LICENSE_ID, read_user="bob", read_time=NOW_LOCAL,
                           next_usable=datetime(2024, 1, 1, 14, 1))
    save(settings.license_file, record)
    save(settings.license_file, LicenseRecord(license_id="LIC-2"))

    statuses = make_coordinator(settings, model_dir).check()

    assert [s.license_id for s in statuses] == [LICENSE_ID, "LIC-2"]
    assert statuses[0].usable is False
    assert statuses[0].text.startswith(f"{LICENSE_ID} (FREE) - READ IN (bob) 2024-01-01 10:01")
    assert statuses[1].usable is True

#!/usr/bin/env python3
"""
SharedTool CLI - thin entrypoint started by the host application or a user.

Modes:
======
- check (alias: standalone): print the status of every license
- autologin: wait for the shared session, log in, log out when it closes
- readin: trigger the read-in macro, record READ IN once confirmed
- writeout: trigger the write-out macro, record WRITE OUT once confirmed
- serve: run the read-only status API

Design Principles:
==================
- CLI is a dispatcher only; all logic lives in the coordinator
- Surface outcomes verbatim, exit non-zero on anything but success
- No interactive prompts

Exit Codes:
===========
- 0: Success
- 1: Nothing to do (no license found, no shared session, cancelled)
- 2: Host never confirmed the action
- 3: License file could not be read or written
- 4: System error (invalid settings, etc.)
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .coordinator import ActionOutcome, ActionStatus, LicenseCoordinator
from .licensing import LicenseLoadError
from .licensing.license_store import ACTION_READ_IN, ACTION_WRITE_OUT
from .observability import configure_console_log, configure_debug_log, dump_diagnostics
from .session import DirectoryHostSession, current_os_user
from .settings import SettingsError, SharedToolSettings, load_settings

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_NOTHING_TO_DO = 1
EXIT_TIMED_OUT = 2
EXIT_STORE_ERROR = 3
EXIT_SYSTEM_ERROR = 4

_STATUS_EXIT_CODES = {
    ActionStatus.COMMITTED: EXIT_OK,
    ActionStatus.SKIPPED: EXIT_NOTHING_TO_DO,
    ActionStatus.NOT_FOUND: EXIT_NOTHING_TO_DO,
    ActionStatus.NOT_CONNECTED: EXIT_NOTHING_TO_DO,
    ActionStatus.TIMED_OUT: EXIT_TIMED_OUT,
    ActionStatus.FAILED: EXIT_STORE_ERROR,
}

MODES = ("check", "standalone", "autologin", "readin", "writeout", "serve")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sharedtool",
        description="Coordinate a shared host license through a shared text file.",
    )
    parser.add_argument("mode", nargs="?", default="check", choices=MODES,
                        help="Action to run (default: check)")
    parser.add_argument("--settings", help="JSON settings file")
    parser.add_argument("--storage-path",
                        help="Storage directory of the host's shared session")
    parser.add_argument("--host", default="127.0.0.1", help="serve: bind address")
    parser.add_argument("--port", type=int, default=8086, help="serve: port")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on console")
    return parser


def _print_outcome(outcome: ActionOutcome) -> int:
    stream = sys.stdout if outcome.committed else sys.stderr
    print(f"{outcome.action}: {outcome.status.value} {outcome.message}".rstrip(), file=stream)
    return _STATUS_EXIT_CODES[outcome.status]


def cmd_check(coordinator: LicenseCoordinator) -> int:
    try:
        statuses = coordinator.check()
    except LicenseLoadError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_STORE_ERROR

    if not statuses:
        print(f"No license data: {coordinator.store.path}")
        return EXIT_OK

    for status in statuses:
        marker = "USABLE" if status.usable else "NOT USABLE"
        print(f"{status.text} [{marker}]")
    return EXIT_OK


async def _run_confirmed(coordinator: LicenseCoordinator, mode: str) -> ActionOutcome:
    if await coordinator.wait_for_session() is None:
        return ActionOutcome(
            action=ACTION_READ_IN if mode == "readin" else ACTION_WRITE_OUT,
            status=ActionStatus.NOT_CONNECTED,
            user=coordinator.user,
            message="No shared host session",
        )
    if mode == "readin":
        return await coordinator.read_in()
    return await coordinator.write_out()


def cmd_serve(settings: SharedToolSettings, host: str, port: int) -> int:
    import uvicorn

    from .monitoring import create_app

    uvicorn.run(create_app(settings), host=host, port=port)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_console_log(args.verbose)

    try:
        settings = load_settings(args.settings)
    except SettingsError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    user = current_os_user()
    debug_file = configure_debug_log(settings.debug_log_dir, user)
    logger.debug(f"START mode={args.mode} user={user} debug_file={debug_file}")
    dump_diagnostics()

    if args.mode == "serve":
        return cmd_serve(settings, args.host, args.port)

    host = DirectoryHostSession(args.storage_path, settings.confirmation_log)
    coordinator = LicenseCoordinator(settings, host, user=user)

    if args.mode in ("check", "standalone"):
        return cmd_check(coordinator)

    try:
        if args.mode == "autologin":
            outcome = asyncio.run(coordinator.run_auto_login_session())
        else:
            outcome = asyncio.run(_run_confirmed(coordinator, args.mode))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        closing = coordinator.close()
        return _print_outcome(closing) if closing else EXIT_NOTHING_TO_DO

    return _print_outcome(outcome)


if __name__ == "__main__":
    sys.exit(main())

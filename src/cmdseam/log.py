"""Timestamped CLI output, GitHub Actions grouping and opt-in library tracing."""

import os
import sys
from datetime import datetime


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _is_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def _trace_enabled() -> bool:
    return os.environ.get("CMDSEAM_TRACE", "") not in ("", "0", "false")


def info(msg: str) -> None:
    print(f"[{_timestamp()}] {msg}", flush=True)


def error(msg: str) -> None:
    if _is_github_actions():
        print(f"::error::{msg}", flush=True)
    print(f"[{_timestamp()}] ERROR: {msg}", file=sys.stderr, flush=True)


def command_start(title: str, command_line: str) -> None:
    """Announce a command; opens a collapsible group under GitHub Actions."""
    if _is_github_actions():
        print(f"::group::{title}", flush=True)
    info(f"▸ {title}")
    info(f"  $ {command_line}")


def command_end(code: int) -> None:
    """Report the exit code and close the group opened by command_start."""
    if code == 0:
        info("  ✓ exit status 0")
    else:
        info(f"  ✗ exit status {code}")
    if _is_github_actions():
        print("::endgroup::", flush=True)
        if code != 0:
            print(f"::error::exit status {code}", flush=True)


def trace(msg: str) -> None:
    """Library diagnostics on stderr, only when CMDSEAM_TRACE is set."""
    if _trace_enabled():
        print(f"[{_timestamp()}] cmdseam: {msg}", file=sys.stderr, flush=True)

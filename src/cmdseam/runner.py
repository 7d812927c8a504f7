"""One-call helpers over a Factory for callers that just need a result."""

import io
import os
import sys
from dataclasses import dataclass

from cmdseam.command import Command, _fileno
from cmdseam.context import Context
from cmdseam.errors import ContextKilledError, ExitError
from cmdseam.factory import Factory, OsFactory


@dataclass
class Result:
    returncode: int
    stdout: str
    stderr: str


def _command(
    args: list[str],
    env: dict[str, str] | None,
    cwd: str | None,
    input: str | None,
    factory: Factory | None,
    ctx: Context | None,
) -> Command:
    factory = factory or OsFactory()
    if ctx is not None:
        cmd = factory.command_context(ctx, *args)
    else:
        cmd = factory.command(*args)
    if env is not None:
        cmd.env = [f"{k}={v}" for k, v in {**os.environ, **env}.items()]
    if cwd:
        cmd.dir = cwd
    if input is not None:
        cmd.stdin = io.BytesIO(input.encode())
    return cmd


def run(
    args: list[str],
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    input: str | None = None,
    factory: Factory | None = None,
    ctx: Context | None = None,
) -> Result:
    """Run a command and capture output. A failed exit is reported in returncode.

    Spawn errors (executable not found, bad cwd) and a kill by ctx are raised.
    """
    cmd = _command(args, env, cwd, input, factory, ctx)
    stdout, stderr = io.BytesIO(), io.BytesIO()
    cmd.stdout = stdout
    cmd.stderr = stderr
    returncode = 0
    try:
        cmd.run()
    except ContextKilledError:
        raise
    except ExitError as e:
        returncode = e.unwrap().returncode
    return Result(
        returncode=returncode,
        stdout=stdout.getvalue().decode(errors="replace"),
        stderr=stderr.getvalue().decode(errors="replace"),
    )


def run_streaming(
    args: list[str],
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    input: str | None = None,
    factory: Factory | None = None,
    ctx: Context | None = None,
) -> int:
    """Run a command with passthrough stdin/stdout/stderr. Returns exit code."""
    cmd = _command(args, env, cwd, input, factory, ctx)
    if input is None and _fileno(sys.stdin) is not None:
        cmd.stdin = sys.stdin
    cmd.stdout = sys.stdout
    cmd.stderr = sys.stderr
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        cmd.run()
    except ContextKilledError:
        raise
    except ExitError as e:
        return e.unwrap().returncode
    return 0

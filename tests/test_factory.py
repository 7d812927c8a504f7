"""Tests for factory.py — command construction, contexts, look_path."""

import os
import time

import pytest

from cmdseam.context import Context
from cmdseam.errors import Canceled, ContextKilledError, DeadlineExceeded, ExecNotFoundError, ExitError
from cmdseam.factory import OsFactory, look_path


def test_command():
    output = OsFactory().command("echo", "something to", "output").combined_output()
    assert output == b"something to output\n"


def test_command_resolves_name():
    cmd = OsFactory().command("sh", "-c", "true")
    assert os.path.isabs(cmd.path)
    assert cmd.args == ["sh", "-c", "true"]


def test_command_keeps_qualified_name(script):
    path = script("hello", "echo hi")
    cmd = OsFactory().command(path)
    assert cmd.path == path
    assert cmd.output() == b"hi\n"


def test_command_context_expired_deadline():
    ctx = Context(timeout=0.001)
    time.sleep(0.01)
    cmd = OsFactory().command_context(ctx, "sleep", "1")
    with pytest.raises(DeadlineExceeded):
        cmd.combined_output()
    assert cmd.process is None


def test_command_context_deadline_kills_process():
    ctx = Context(timeout=0.1)
    cmd = OsFactory().command_context(ctx, "sleep", "5")
    start = time.monotonic()
    with pytest.raises(ContextKilledError) as exc_info:
        cmd.combined_output()
    assert time.monotonic() - start < 4
    err = exc_info.value
    assert isinstance(err, ExitError)
    assert isinstance(err.context_err, DeadlineExceeded)
    assert str(err) == "context deadline exceeded"
    assert not err.process_state.exited
    assert err.output == b""


def test_command_context_cancel_kills_process():
    ctx = Context()
    cmd = OsFactory().command_context(ctx, "sleep", "5")
    cmd.start()
    ctx.cancel()
    with pytest.raises(ContextKilledError) as exc_info:
        cmd.wait()
    assert isinstance(exc_info.value.context_err, Canceled)


def test_command_context_ordinary_failure_is_plain_exit_error():
    ctx = Context(timeout=30)
    cmd = OsFactory().command_context(ctx, "sh", "-c", "exit 4")
    with pytest.raises(ExitError) as exc_info:
        cmd.run()
    assert not isinstance(exc_info.value, ContextKilledError)
    assert exc_info.value.exit_code == 4
    ctx.cancel()


def test_command_context_cancel_after_exit_is_harmless():
    ctx = Context()
    cmd = OsFactory().command_context(ctx, "true")
    cmd.run()
    ctx.cancel()
    assert cmd.process_state.success


def test_command_context_kill_does_not_wait_for_grandchildren():
    # sh forks sleep, which keeps the output pipe open after sh is killed
    ctx = Context(timeout=0.2)
    cmd = OsFactory().command_context(ctx, "sh", "-c", "sleep 5; echo done")
    start = time.monotonic()
    with pytest.raises(ContextKilledError):
        cmd.combined_output()
    assert time.monotonic() - start < 3


def test_command_context_unregisters_after_wait():
    ctx = Context()
    for _ in range(50):
        OsFactory().command_context(ctx, "true").run()
    assert ctx._callbacks == []
    ctx.cancel()


def test_command_context_fired_after_exit_is_not_a_kill():
    ctx = Context()
    cmd = OsFactory().command_context(ctx, "sh", "-c", "exit 2")
    cmd.start()
    cmd.process.wait()
    ctx.cancel()
    with pytest.raises(ExitError) as exc_info:
        cmd.wait()
    assert not isinstance(exc_info.value, ContextKilledError)
    assert exc_info.value.exit_code == 2


def test_command_context_requires_context():
    with pytest.raises(ValueError):
        OsFactory().command_context(None, "true")


def test_look_path_searches_path(tmp_path, monkeypatch, script):
    script("mockery", "exit 0")
    monkeypatch.setenv("PATH", str(tmp_path) + os.pathsep + os.environ.get("PATH", ""))
    assert OsFactory().look_path("mockery") == str(tmp_path / "mockery")


def test_look_path_not_found(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(ExecNotFoundError) as exc_info:
        look_path("definitely-not-here")
    assert "executable file not found in $PATH" in str(exc_info.value)


def test_look_path_skips_non_executable(tmp_path, monkeypatch):
    (tmp_path / "plain").write_text("data")
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(ExecNotFoundError):
        look_path("plain")


def test_look_path_qualified(script, tmp_path, monkeypatch):
    path = script("tool", "exit 0")
    assert look_path(path) == path
    monkeypatch.chdir(tmp_path)
    assert os.path.samefile(look_path("./tool"), path)


def test_look_path_qualified_not_executable(tmp_path):
    plain = tmp_path / "plain"
    plain.write_text("data")
    with pytest.raises(ExecNotFoundError, match="not an executable file"):
        look_path(str(plain))
    with pytest.raises(ExecNotFoundError, match="no such file"):
        look_path(str(tmp_path / "missing"))


def test_look_path_empty_name():
    with pytest.raises(ExecNotFoundError):
        look_path("")

"""Tests for runner.py — one-call helpers."""

import pytest

from cmdseam.context import Context
from cmdseam.errors import ContextKilledError
from cmdseam.fake import FakeResult
from cmdseam.runner import Result, run, run_streaming


def test_result_dataclass():
    r = Result(returncode=0, stdout="hello", stderr="")
    assert r.returncode == 0
    assert r.stdout == "hello"
    assert r.stderr == ""


def test_run_captures_output():
    result = run(["echo", "hello"])
    assert result.returncode == 0
    assert result.stdout.strip() == "hello"
    assert result.stderr == ""


def test_run_captures_stderr():
    result = run(["sh", "-c", "echo err >&2"])
    assert result.stderr.strip() == "err"


def test_run_returns_nonzero():
    result = run(["sh", "-c", "exit 42"])
    assert result.returncode == 42


def test_run_with_env():
    result = run(["sh", "-c", "echo $TEST_VAR"], env={"TEST_VAR": "works"})
    assert result.stdout.strip() == "works"


def test_run_env_merges_os_environ(monkeypatch):
    monkeypatch.setenv("OUTER_VAR", "kept")
    result = run(["sh", "-c", "echo $OUTER_VAR-$INNER"], env={"INNER": "added"})
    assert result.stdout.strip() == "kept-added"


def test_run_with_cwd(tmp_path):
    result = run(["pwd"], cwd=str(tmp_path))
    assert result.stdout.strip() == str(tmp_path.resolve())


def test_run_with_input():
    assert run(["cat"], input="piped").stdout == "piped"


def test_run_missing_executable():
    with pytest.raises(FileNotFoundError):
        run(["no-such-command-anywhere"])


def test_run_killed_by_context_raises():
    with pytest.raises(ContextKilledError):
        run(["sleep", "5"], ctx=Context(timeout=0.05))


def test_run_with_fake_factory(fake_factory):
    fake_factory.responses.append(FakeResult(returncode=1, stdout=b"out", stderr=b"err"))
    result = run(["tool", "sub"], cwd="/srv", factory=fake_factory)
    assert result == Result(returncode=1, stdout="out", stderr="err")
    assert fake_factory.calls == [("command", ["tool", "sub"])]
    assert fake_factory.commands[0].dir == "/srv"


def test_run_with_fake_factory_and_context(fake_factory):
    ctx = Context()
    run(["tool"], factory=fake_factory, ctx=ctx)
    assert fake_factory.calls == [("command_context", ["tool"])]
    assert fake_factory.commands[0].context is ctx


def test_run_streaming_returns_exit_code():
    code = run_streaming(["true"])
    assert code == 0


def test_run_streaming_nonzero():
    code = run_streaming(["false"])
    assert code != 0


def test_run_streaming_passes_output_through(capsys):
    run_streaming(["sh", "-c", "echo visible"])
    assert "visible" in capsys.readouterr().out


def test_run_streaming_with_input(fake_factory):
    run_streaming(["cat"], input="hello", factory=fake_factory)
    assert fake_factory.commands[0].stdin_data == b"hello"

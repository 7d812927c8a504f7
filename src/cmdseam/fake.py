"""Test doubles for code that takes a Factory.

    factory = FakeFactory(responses=[FakeResult(stdout=b"v1.2\n")])
    assert get_version(factory) == "v1.2"
    assert factory.calls == [("command", ["tool", "--version"])]

FakeCommand shares the configuration and already-started guard of the real
Command and raises the same ExitError / ContextKilledError types.
"""

import io
import itertools
import signal as _signal
from dataclasses import dataclass
from datetime import timedelta

from cmdseam.command import Command
from cmdseam.context import Context
from cmdseam.errors import ExecNotFoundError, ProcessDoneError
from cmdseam.factory import Factory
from cmdseam.process import Process
from cmdseam.state import ProcessState

_TERMINATING = {_signal.SIGKILL, _signal.SIGTERM, _signal.SIGINT, _signal.SIGHUP}
_pids = itertools.count(1000)


@dataclass
class FakeResult:
    """Scripted outcome of one FakeCommand."""

    returncode: int = 0
    stdout: bytes = b""
    stderr: bytes = b""
    signal: int | None = None
    pid: int | None = None
    start_error: Exception | None = None
    user_time: timedelta = timedelta(0)
    system_time: timedelta = timedelta(0)


class FakeProcessState(ProcessState):
    def __init__(
        self,
        pid: int,
        returncode: int = 0,
        signal: int | None = None,
        user_time: timedelta = timedelta(0),
        system_time: timedelta = timedelta(0),
    ):
        self._pid = pid
        self._returncode = returncode
        self._signal = signal
        self._user_time = user_time
        self._system_time = system_time

    @property
    def exit_code(self) -> int:
        return -1 if self._signal is not None else self._returncode

    @property
    def exited(self) -> bool:
        return self._signal is None

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def signal(self) -> int | None:
        return self._signal

    @property
    def system_time(self) -> timedelta:
        return self._system_time

    @property
    def user_time(self) -> timedelta:
        return self._user_time

    @property
    def sys(self) -> int:
        if self._signal is not None:
            return self._signal
        return self._returncode << 8

    @property
    def sys_usage(self):
        return None


class FakeProcess(Process):
    """Records delivered signals; terminating signals end the process."""

    def __init__(self, pid: int, result: FakeResult):
        self._pid = pid
        self._result = result
        self._killed_by: int | None = None
        self._state: FakeProcessState | None = None
        self.signals: list[int] = []
        self.released = False

    @property
    def pid(self) -> int:
        return self._pid

    def signal(self, sig: int) -> None:
        if self.released:
            raise ProcessDoneError("os: process already released")
        if self._state is not None:
            raise ProcessDoneError("os: process already finished")
        self.signals.append(sig)
        if sig in _TERMINATING and self._killed_by is None:
            self._killed_by = sig

    def release(self) -> None:
        self.released = True

    def wait(self) -> ProcessState:
        if self._state is None:
            result = self._result
            sig = self._killed_by if self._killed_by is not None else result.signal
            self._state = FakeProcessState(
                self._pid,
                returncode=result.returncode,
                signal=sig,
                user_time=result.user_time,
                system_time=result.system_time,
            )
        return self._state


class _StdinBuffer(io.BytesIO):
    """Keeps what the caller wrote after close()."""

    data = b""

    def close(self) -> None:
        if not self.closed:
            self.data = self.getvalue()
        super().close()


class FakeCommand(Command):
    """Command that replays a FakeResult instead of spawning."""

    def __init__(self, path, args=None, result: FakeResult | None = None, lookup_err=None,
                 context: Context | None = None):
        super().__init__(path, args, lookup_err=lookup_err, context=context)
        self.result = result or FakeResult()
        self.stdin_data: bytes | None = None
        self._process: FakeProcess | None = None
        self._state: ProcessState | None = None
        self._stdin_buffer: _StdinBuffer | None = None
        self._readers: dict[str, io.BytesIO] = {}
        self._wait_called = False
        self._ctx_killed = False

    @property
    def started(self) -> bool:
        return self._process is not None

    @property
    def process(self) -> Process | None:
        return self._process

    @property
    def process_state(self) -> ProcessState | None:
        return self._state

    def stdin_pipe(self):
        if self._stdin is not None:
            raise RuntimeError("exec: Stdin already set")
        if self.started:
            raise RuntimeError("exec: StdinPipe after process started")
        self._stdin_buffer = _StdinBuffer()
        self._stdin = self._stdin_buffer
        return self._stdin_buffer

    def stdout_pipe(self):
        return self._reader("stdout")

    def stderr_pipe(self):
        return self._reader("stderr")

    def _reader(self, name: str):
        if getattr(self, f"_{name}") is not None:
            raise RuntimeError(f"exec: {name.capitalize()} already set")
        if self.started:
            raise RuntimeError(f"exec: {name.capitalize()}Pipe after process started")
        buf = io.BytesIO()
        self._readers[name] = buf
        setattr(self, f"_{name}", buf)
        return buf

    def start(self) -> None:
        if self._lookup_err is not None:
            raise self._lookup_err
        if self.started:
            raise RuntimeError("exec: already started")
        ctx = self._context
        if ctx is not None and ctx.done:
            raise ctx.err
        if self.result.start_error is not None:
            raise self.result.start_error

        pid = self.result.pid if self.result.pid is not None else next(_pids)
        self._process = FakeProcess(pid, self.result)
        _write(self._stdout, self.result.stdout)
        _write(self._stderr, self.result.stderr)
        for buf in self._readers.values():
            buf.seek(0)
        if ctx is not None:
            ctx.add_done_callback(self._on_context_done)

    def wait(self) -> None:
        if self._process is None:
            raise RuntimeError("exec: not started")
        if self._wait_called:
            raise RuntimeError("exec: Wait was already called")
        self._wait_called = True

        buf = self._stdin_buffer
        if buf is not None:
            self.stdin_data = buf.data if buf.closed else buf.getvalue()
        elif self._stdin is not None:
            data = self._stdin.read()
            self.stdin_data = data.encode() if isinstance(data, str) else data

        state = self._process.wait()
        if self._context is not None:
            self._context.remove_done_callback(self._on_context_done)
        self._state = state
        if not state.success:
            raise self._exit_error(state)

    def _killed_by_context(self) -> bool:
        return self._ctx_killed

    def _on_context_done(self, ctx: Context) -> None:
        self._ctx_killed = True
        try:
            self._process.kill()
        except ProcessLookupError:
            self._ctx_killed = False


def _write(writer, data: bytes) -> None:
    if writer is None or not data:
        return
    if isinstance(writer, io.TextIOBase):
        writer.write(data.decode("utf-8", errors="replace"))
    else:
        writer.write(data)


class FakeFactory(Factory):
    """Hands out FakeCommands scripted by queued FakeResults.

    Every call is recorded in ``calls``; built commands are kept in
    ``commands``. ``paths`` maps names to what look_path() resolves.
    """

    def __init__(self, responses: list[FakeResult] | None = None,
                 paths: dict[str, str] | None = None):
        self.calls: list[tuple] = []
        self.responses = list(responses or [])
        self.paths = dict(paths or {})
        self.commands: list[FakeCommand] = []

    def command(self, name: str, *args: str) -> Command:
        self.calls.append(("command", [name, *args]))
        return self._build(name, args, None)

    def command_context(self, ctx: Context, name: str, *args: str) -> Command:
        if ctx is None:
            raise ValueError("command_context requires a Context")
        self.calls.append(("command_context", [name, *args]))
        return self._build(name, args, ctx)

    def look_path(self, file: str) -> str:
        self.calls.append(("look_path", file))
        if file in self.paths:
            return self.paths[file]
        raise ExecNotFoundError(file)

    def _build(self, name: str, args: tuple, ctx: Context | None) -> FakeCommand:
        result = self.responses.pop(0) if self.responses else FakeResult()
        cmd = FakeCommand(self.paths.get(name, name), [name, *args], result=result, context=ctx)
        self.commands.append(cmd)
        return cmd

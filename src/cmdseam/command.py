"""Command: mutable launch specification that freezes once started."""

import codecs
import contextlib
import io
import os
import select
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cmdseam import log
from cmdseam.context import Context
from cmdseam.errors import AlreadyStartedError, ContextKilledError, ExitError, status_error
from cmdseam.process import OsProcess, Process
from cmdseam.state import ProcessState

_CHUNK = 32 * 1024
# After a context kill, how long copiers may keep draining output that
# orphaned grandchildren still hold open.
_WAIT_DELAY = 1.0
_POLL = 0.1


@dataclass
class SysProcAttr:
    """Platform process attributes, handed to subprocess.Popen as-is."""

    start_new_session: bool = False
    process_group: int | None = None
    user: str | int | None = None
    group: str | int | None = None
    extra_groups: list[str | int] | None = None
    umask: int = -1

    def popen_kwargs(self) -> dict:
        kwargs = {"start_new_session": self.start_new_session, "umask": self.umask}
        for name in ("process_group", "user", "group", "extra_groups"):
            value = getattr(self, name)
            if value is not None:
                kwargs[name] = value
        return kwargs


class Command(ABC):
    """How to launch a process.

    Holds the configuration shared by every implementation and enforces
    that none of it changes once the process has started: any setter or
    append_* call after start raises AlreadyStartedError and leaves the
    field untouched. Getters work at any time.

    Subclasses supply start(), wait(), the pipe constructors and access
    to the Process/ProcessState; run(), output() and combined_output()
    are built on top of them.
    """

    def __init__(
        self,
        path: str,
        args: list[str] | None = None,
        lookup_err: Exception | None = None,
        context: Context | None = None,
    ):
        self._path = path
        self._args = args if args is not None else [path]
        self._env: list[str] | None = None
        self._dir = ""
        self._stdin = None
        self._stdout = None
        self._stderr = None
        self._extra_files: list | None = None
        self._sys_proc_attr: SysProcAttr | None = None
        self._lookup_err = lookup_err
        self._context = context

    @property
    @abstractmethod
    def started(self) -> bool: ...

    @property
    @abstractmethod
    def process(self) -> Process | None:
        """The live Process once started, the same instance on every access."""

    @property
    @abstractmethod
    def process_state(self) -> ProcessState | None:
        """The ProcessState once a run/wait/output call has returned."""

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def wait(self) -> None: ...

    @abstractmethod
    def stdin_pipe(self): ...

    @abstractmethod
    def stdout_pipe(self): ...

    @abstractmethod
    def stderr_pipe(self): ...

    def _check_not_started(self) -> None:
        if self.started:
            raise AlreadyStartedError()

    @property
    def context(self) -> Context | None:
        return self._context

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, path: str) -> None:
        self._check_not_started()
        self._path = path

    @property
    def args(self) -> list[str]:
        return self._args

    @args.setter
    def args(self, args: list[str]) -> None:
        self._check_not_started()
        self._args = args

    def append_args(self, *args: str) -> None:
        self._check_not_started()
        self._args = [*self._args, *args]

    @property
    def env(self) -> list[str] | None:
        return self._env

    @env.setter
    def env(self, env: list[str] | None) -> None:
        self._check_not_started()
        self._env = env

    def append_env(self, *env: str) -> None:
        self._check_not_started()
        self._env = [*(self._env or []), *env]

    @property
    def dir(self) -> str:
        return self._dir

    @dir.setter
    def dir(self, dir: str) -> None:
        self._check_not_started()
        self._dir = dir

    @property
    def stdin(self):
        return self._stdin

    @stdin.setter
    def stdin(self, reader) -> None:
        self._check_not_started()
        self._stdin = reader

    @property
    def stdout(self):
        return self._stdout

    @stdout.setter
    def stdout(self, writer) -> None:
        self._check_not_started()
        self._stdout = writer

    @property
    def stderr(self):
        return self._stderr

    @stderr.setter
    def stderr(self, writer) -> None:
        self._check_not_started()
        self._stderr = writer

    @property
    def extra_files(self) -> list | None:
        return self._extra_files

    @extra_files.setter
    def extra_files(self, files: list | None) -> None:
        self._check_not_started()
        self._extra_files = files

    def append_extra_files(self, *files) -> None:
        self._check_not_started()
        self._extra_files = [*(self._extra_files or []), *files]

    @property
    def sys_proc_attr(self) -> SysProcAttr | None:
        return self._sys_proc_attr

    @sys_proc_attr.setter
    def sys_proc_attr(self, attr: SysProcAttr | None) -> None:
        self._check_not_started()
        self._sys_proc_attr = attr

    def run(self) -> None:
        """Start and wait. Raises ExitError on an unsuccessful exit."""
        self.start()
        self.wait()

    def output(self) -> bytes:
        """Run and return stdout.

        On an unsuccessful exit the ExitError carries the stdout read so
        far and, when stderr was not configured, the captured stderr.
        """
        if self.started:
            raise RuntimeError("exec: already started")
        if self._stdout is not None:
            raise RuntimeError("exec: Stdout already set")
        stdout = io.BytesIO()
        self.stdout = stdout
        stderr = None
        if self._stderr is None:
            stderr = io.BytesIO()
            self.stderr = stderr
        try:
            self.run()
        except ExitError as e:
            e.output = stdout.getvalue()
            if stderr is not None:
                e.stderr = stderr.getvalue()
            raise
        return stdout.getvalue()

    def combined_output(self) -> bytes:
        """Run and return stdout and stderr interleaved in write order."""
        if self.started:
            raise RuntimeError("exec: already started")
        if self._stdout is not None:
            raise RuntimeError("exec: Stdout already set")
        if self._stderr is not None:
            raise RuntimeError("exec: Stderr already set")
        buf = io.BytesIO()
        self.stdout = buf
        self.stderr = buf
        try:
            self.run()
        except ExitError as e:
            e.output = buf.getvalue()
            raise
        return buf.getvalue()

    def _exit_error(self, state: ProcessState) -> ExitError:
        ctx = self._context
        if ctx is not None and ctx.err is not None and self._killed_by_context():
            return ContextKilledError(state, status_error(state, self._args), ctx.err)
        return ExitError.from_state(state, self._args)

    def _killed_by_context(self) -> bool:
        return False

    def __str__(self) -> str:
        if self._lookup_err is not None:
            return " ".join(self._args)
        return " ".join([self._path, *self._args[1:]])

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"


def _fileno(stream) -> int | None:
    """The OS descriptor behind stream, or None if it is not a real file."""
    if stream is None:
        return None
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


class OsCommand(Command):
    """Command backed by subprocess.Popen.

    Streams that are real files go to the child directly. Other readers
    and writers are bridged through an os.pipe() and a copying thread
    that wait() joins.
    """

    def __init__(self, path, args=None, lookup_err=None, context=None):
        super().__init__(path, args, lookup_err=lookup_err, context=context)
        self._popen: subprocess.Popen | None = None
        self._process: OsProcess | None = None
        self._state: ProcessState | None = None
        self._wait_called = False
        self._reaped = False
        self._ctx_killed = False
        self._close_after_start: list = []
        self._close_after_wait: list = []
        self._copiers: list[threading.Thread] = []
        self._copy_errors: list[Exception] = []
        self._stop_copying = threading.Event()

    @property
    def started(self) -> bool:
        return self._popen is not None

    @property
    def process(self) -> Process | None:
        return self._process

    @property
    def process_state(self) -> ProcessState | None:
        return self._state

    def stdin_pipe(self):
        """Writable end of a pipe feeding the child's stdin.

        Close it to signal end of input; wait() closes it otherwise.
        """
        if self._stdin is not None:
            raise RuntimeError("exec: Stdin already set")
        if self.started:
            raise RuntimeError("exec: StdinPipe after process started")
        r, w = os.pipe()
        reader = os.fdopen(r, "rb")
        writer = os.fdopen(w, "wb")
        self._stdin = reader
        self._close_after_start.append(reader)
        self._close_after_wait.append(writer)
        return writer

    def stdout_pipe(self):
        """Readable end of a pipe fed by the child's stdout. Drain it before wait()."""
        if self._stdout is not None:
            raise RuntimeError("exec: Stdout already set")
        if self.started:
            raise RuntimeError("exec: StdoutPipe after process started")
        reader, writer = self._read_pipe()
        self._stdout = writer
        return reader

    def stderr_pipe(self):
        """Readable end of a pipe fed by the child's stderr. Drain it before wait()."""
        if self._stderr is not None:
            raise RuntimeError("exec: Stderr already set")
        if self.started:
            raise RuntimeError("exec: StderrPipe after process started")
        reader, writer = self._read_pipe()
        self._stderr = writer
        return reader

    def _read_pipe(self):
        r, w = os.pipe()
        reader = os.fdopen(r, "rb")
        writer = os.fdopen(w, "wb")
        self._close_after_start.append(writer)
        self._close_after_wait.append(reader)
        return reader, writer

    def start(self) -> None:
        if self._lookup_err is not None:
            self._close_all()
            raise self._lookup_err
        if self.started:
            raise RuntimeError("exec: already started")
        ctx = self._context
        if ctx is not None and ctx.done:
            self._close_all()
            raise ctx.err

        copiers: list[threading.Thread] = []
        try:
            stdin = self._child_stdin(copiers)
            stdout = self._child_output(self._stdout, copiers)
            if self._stderr is not None and self._stderr is self._stdout:
                stderr = stdout
            else:
                stderr = self._child_output(self._stderr, copiers)
            kwargs = {}
            if self._sys_proc_attr is not None:
                kwargs.update(self._sys_proc_attr.popen_kwargs())
            popen = subprocess.Popen(
                self._args or [self._path],
                executable=self._path,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                cwd=self._dir or None,
                env=self._environ(),
                pass_fds=tuple(f.fileno() for f in self._extra_files or ()),
                **kwargs,
            )
        except BaseException:
            self._close_all()
            raise

        self._popen = popen
        self._process = OsProcess(popen)
        self._close_files(self._close_after_start)
        self._copiers = copiers
        for t in copiers:
            t.start()
        log.trace(f"started pid {popen.pid}: {self}")

        if ctx is not None:
            ctx.add_done_callback(self._on_context_done)

    def wait(self) -> None:
        if self._popen is None:
            raise RuntimeError("exec: not started")
        if self._wait_called:
            raise RuntimeError("exec: Wait was already called")
        self._wait_called = True

        ctx = self._context
        try:
            state = self.process.wait()
            self._reaped = True
            if self._ctx_killed:
                self._join_copiers_within(_WAIT_DELAY)
            else:
                for t in self._copiers:
                    t.join()
        finally:
            self._close_files(self._close_after_wait)
            if ctx is not None:
                ctx.remove_done_callback(self._on_context_done)

        self._state = state
        log.trace(f"pid {state.pid} {state}: {self}")
        if not state.success:
            raise self._exit_error(state)
        if self._copy_errors:
            raise self._copy_errors[0]

    def _killed_by_context(self) -> bool:
        return self._ctx_killed

    def _on_context_done(self, ctx: Context) -> None:
        if self._reaped:
            return
        # Set before the kill so wait() never sees the death without the flag.
        self._ctx_killed = True
        try:
            self.process.kill()
        except ProcessLookupError:
            self._ctx_killed = False
            return
        log.trace(f"killed pid {self._popen.pid} ({ctx.err}): {self}")

    def _join_copiers_within(self, delay: float) -> None:
        """Give copiers delay seconds to finish, then make the output ones stop."""
        deadline = time.monotonic() + delay
        for t in self._copiers:
            t.join(max(0.0, deadline - time.monotonic()))
        self._stop_copying.set()
        for t in self._copiers:
            t.join(_POLL * 2)

    def _environ(self) -> dict[str, str] | None:
        if self._env is None:
            return None
        environ = {}
        for item in self._env:
            key, sep, value = item.partition("=")
            if sep:
                environ[key] = value
        return environ

    def _child_stdin(self, copiers: list):
        if self._stdin is None:
            return subprocess.DEVNULL
        fd = _fileno(self._stdin)
        if fd is not None:
            return fd
        r, w = os.pipe()
        child = os.fdopen(r, "rb")
        self._close_after_start.append(child)
        # Unbuffered so wait() can close it under a writer stuck on a full pipe.
        parent = os.fdopen(w, "wb", buffering=0)
        self._close_after_wait.append(parent)
        copiers.append(threading.Thread(target=self._copy_in, args=(self._stdin, parent), daemon=True))
        return child

    def _child_output(self, writer, copiers: list):
        if writer is None:
            return subprocess.DEVNULL
        fd = _fileno(writer)
        if fd is not None:
            return fd
        r, w = os.pipe()
        child = os.fdopen(w, "wb")
        self._close_after_start.append(child)
        parent = os.fdopen(r, "rb")
        self._close_after_wait.append(parent)
        copiers.append(threading.Thread(target=self._copy_out, args=(parent, writer), daemon=True))
        return child

    def _copy_in(self, reader, dest) -> None:
        try:
            with dest:
                while not self._stop_copying.is_set():
                    data = reader.read(_CHUNK)
                    if not data:
                        break
                    if isinstance(data, str):
                        data = data.encode()
                    view = memoryview(data)
                    while view:
                        view = view[dest.write(view):]
        except BrokenPipeError:
            # The child exited or closed stdin without reading everything.
            pass
        except Exception as e:
            self._copy_errors.append(e)

    def _copy_out(self, src, writer) -> None:
        decoder = None
        if isinstance(writer, io.TextIOBase):
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            with src:
                fd = src.fileno()
                while not self._stop_copying.is_set():
                    ready, _, _ = select.select([fd], [], [], _POLL)
                    if not ready:
                        continue
                    chunk = os.read(fd, _CHUNK)
                    if not chunk:
                        break
                    writer.write(decoder.decode(chunk) if decoder else chunk)
                if decoder:
                    writer.write(decoder.decode(b"", final=True))
        except Exception as e:
            self._copy_errors.append(e)

    def _close_all(self) -> None:
        self._close_files(self._close_after_start)
        self._close_files(self._close_after_wait)

    @staticmethod
    def _close_files(files: list) -> None:
        for f in files:
            with contextlib.suppress(OSError):
                f.close()
        files.clear()

"""Error taxonomy: spawn failures, exit-status failures, misuse after start."""

import subprocess

ALREADY_STARTED = "cmd: process already started"


class AlreadyStartedError(BaseException):
    """A Command was mutated after its process started.

    Derives from BaseException so ``except Exception`` handlers in calling
    code cannot swallow it. It marks a bug in the caller, not a runtime
    condition.
    """

    def __init__(self, message: str = ALREADY_STARTED):
        super().__init__(message)


class ExecNotFoundError(FileNotFoundError):
    """No executable with the given name was found."""

    def __init__(self, name: str, reason: str = "executable file not found in $PATH"):
        super().__init__(f'exec: "{name}": {reason}')
        self.filename = name
        self.name = name


class ProcessDoneError(ProcessLookupError):
    """Signal delivery to a process that was already reaped or released."""


class ContextError(Exception):
    """Base for the reasons a Context fires."""


class Canceled(ContextError):
    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class DeadlineExceeded(ContextError):
    """The deadline passed. Not an OSError, so spawn-failure handlers skip it."""

    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


class ExitError(Exception):
    """The process ran and did not exit successfully.

    Carries the ProcessState, the stderr captured by ``Command.output()``
    (empty otherwise) and stdout captured before the failure. The
    underlying ``subprocess.CalledProcessError`` is available through
    ``unwrap()`` and chained as ``__cause__``.
    """

    def __init__(self, state, cause: subprocess.CalledProcessError, stderr: bytes = b"",
                 output: bytes = b""):
        super().__init__(str(state))
        self.process_state = state
        self.stderr = stderr
        self.output = output
        self._cause = cause
        self.__cause__ = cause

    @classmethod
    def from_state(cls, state, args: list[str], **kwargs) -> "ExitError":
        return cls(state, status_error(state, args), **kwargs)

    def unwrap(self) -> subprocess.CalledProcessError:
        return self._cause

    @property
    def exit_code(self) -> int:
        return self.process_state.exit_code

    @property
    def exited(self) -> bool:
        return self.process_state.exited

    @property
    def pid(self) -> int:
        return self.process_state.pid

    @property
    def success(self) -> bool:
        return self.process_state.success

    @property
    def sys(self):
        return self.process_state.sys

    @property
    def sys_usage(self):
        return self.process_state.sys_usage

    @property
    def system_time(self):
        return self.process_state.system_time

    @property
    def user_time(self):
        return self.process_state.user_time


class ContextKilledError(ExitError):
    """The process was killed because its bound Context fired."""

    def __init__(self, state, cause: subprocess.CalledProcessError, context_err: ContextError,
                 stderr: bytes = b"", output: bytes = b""):
        super().__init__(state, cause, stderr=stderr, output=output)
        self.context_err = context_err
        self.args = (str(context_err),)


def status_error(state, args: list[str]) -> subprocess.CalledProcessError:
    """Build the OS-level status error for a finished process.

    Follows the subprocess convention of a negative return code for a
    process terminated by a signal.
    """
    returncode = state.exit_code if state.exited else -(state.signal or 0)
    return subprocess.CalledProcessError(returncode, list(args))

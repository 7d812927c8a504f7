"""Exit-status snapshot of a reaped process."""

import os
import signal as _signal
from abc import ABC, abstractmethod
from datetime import timedelta


class ProcessState(ABC):
    """Immutable exit information. Created once, when the process is reaped."""

    @property
    @abstractmethod
    def exit_code(self) -> int:
        """Exit code, or -1 when the process was terminated by a signal."""

    @property
    @abstractmethod
    def exited(self) -> bool:
        """True if the process terminated by a normal exit."""

    @property
    @abstractmethod
    def pid(self) -> int: ...

    @property
    @abstractmethod
    def signal(self) -> int | None:
        """Terminating signal number, or None."""

    @property
    @abstractmethod
    def system_time(self) -> timedelta: ...

    @property
    @abstractmethod
    def user_time(self) -> timedelta: ...

    @property
    @abstractmethod
    def sys(self):
        """Raw platform wait status."""

    @property
    @abstractmethod
    def sys_usage(self):
        """Raw platform resource usage, or None."""

    @property
    def signaled(self) -> bool:
        return self.signal is not None

    @property
    def success(self) -> bool:
        return self.exited and self.exit_code == 0

    def __str__(self) -> str:
        if self.exited:
            return f"exit status {self.exit_code}"
        if self.signal is not None:
            return f"signal: {signal_name(self.signal)}"
        return f"unknown status {self.sys}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} pid={self.pid} {self}>"


def signal_name(signum: int) -> str:
    """Lower-case description of a signal, e.g. 'killed' for SIGKILL."""
    desc = _signal.strsignal(signum)
    if not desc:
        return f"signal {signum}"
    return desc.split(":")[0].lower()


class OsProcessState(ProcessState):
    """State decoded from an os.wait4() status and resource usage."""

    def __init__(self, pid: int, status: int, rusage=None):
        self._pid = pid
        self._status = status
        self._rusage = rusage

    @property
    def exit_code(self) -> int:
        if os.WIFEXITED(self._status):
            return os.WEXITSTATUS(self._status)
        return -1

    @property
    def exited(self) -> bool:
        return os.WIFEXITED(self._status)

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def signal(self) -> int | None:
        if os.WIFSIGNALED(self._status):
            return os.WTERMSIG(self._status)
        return None

    @property
    def system_time(self) -> timedelta:
        if self._rusage is None:
            return timedelta(0)
        return timedelta(seconds=max(0.0, self._rusage.ru_stime))

    @property
    def user_time(self) -> timedelta:
        if self._rusage is None:
            return timedelta(0)
        return timedelta(seconds=max(0.0, self._rusage.ru_utime))

    @property
    def sys(self) -> int:
        return self._status

    @property
    def sys_usage(self):
        return self._rusage

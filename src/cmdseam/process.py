"""Live handle to a started child process."""

import os
import signal as _signal
import subprocess
import threading
from abc import ABC, abstractmethod

from cmdseam.errors import ProcessDoneError
from cmdseam.state import OsProcessState, ProcessState


class Process(ABC):
    """A running child. Signalable until reaped; wait() reaps it."""

    @property
    @abstractmethod
    def pid(self) -> int: ...

    @abstractmethod
    def signal(self, sig: int) -> None:
        """Deliver sig. Raises ProcessDoneError once reaped or released."""

    @abstractmethod
    def release(self) -> None:
        """Stop tracking the process without waiting for it."""

    @abstractmethod
    def wait(self) -> ProcessState:
        """Block until exit and reap. Repeated calls return the same state."""

    def kill(self) -> None:
        self.signal(_signal.SIGKILL)


class OsProcess(Process):
    """Process backed by a subprocess.Popen, reaped with os.wait4()."""

    def __init__(self, popen: subprocess.Popen):
        self._popen = popen
        self._state: OsProcessState | None = None
        self._released = False
        self._wait_lock = threading.Lock()

    @property
    def pid(self) -> int:
        return self._popen.pid

    def signal(self, sig: int) -> None:
        if self._released:
            raise ProcessDoneError("os: process already released")
        if self._state is not None or self._popen.returncode is not None:
            raise ProcessDoneError("os: process already finished")
        os.kill(self._popen.pid, sig)

    def release(self) -> None:
        self._released = True

    def wait(self) -> ProcessState:
        with self._wait_lock:
            if self._state is not None:
                return self._state
            pid, status, rusage = os.wait4(self._popen.pid, 0)
            # Popen must not try to reap the pid again.
            self._popen.returncode = os.waitstatus_to_exitcode(status)
            self._state = OsProcessState(pid, status, rusage)
            return self._state

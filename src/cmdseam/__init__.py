try:
    from importlib.metadata import version

    __version__ = version("cmdseam")
except Exception:
    __version__ = "0.0.0"

from cmdseam.command import Command, OsCommand, SysProcAttr  # noqa: E402
from cmdseam.context import Context  # noqa: E402
from cmdseam.errors import (  # noqa: E402
    AlreadyStartedError,
    Canceled,
    ContextError,
    ContextKilledError,
    DeadlineExceeded,
    ExecNotFoundError,
    ExitError,
    ProcessDoneError,
)
from cmdseam.factory import Factory, OsFactory, look_path  # noqa: E402
from cmdseam.process import OsProcess, Process  # noqa: E402
from cmdseam.state import OsProcessState, ProcessState  # noqa: E402

__all__ = [
    "AlreadyStartedError",
    "Canceled",
    "Command",
    "Context",
    "ContextError",
    "ContextKilledError",
    "DeadlineExceeded",
    "ExecNotFoundError",
    "ExitError",
    "Factory",
    "OsCommand",
    "OsFactory",
    "OsProcess",
    "OsProcessState",
    "Process",
    "ProcessDoneError",
    "ProcessState",
    "SysProcAttr",
    "look_path",
]

"""Factory: builds Commands and resolves executables on $PATH."""

import os
import shutil
from abc import ABC, abstractmethod

from cmdseam.command import Command, OsCommand
from cmdseam.context import Context
from cmdseam.errors import ExecNotFoundError


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def look_path(file: str) -> str:
    """Resolve file to the absolute path of an executable.

    A name containing a path separator is checked as-is; a bare name is
    searched in the directories of $PATH. Raises ExecNotFoundError.
    """
    if os.path.dirname(file):
        if _is_executable(file):
            return os.path.abspath(file)
        if not os.path.exists(file):
            raise ExecNotFoundError(file, "no such file or directory")
        raise ExecNotFoundError(file, "not an executable file")

    if not file:
        raise ExecNotFoundError(file)
    found = shutil.which(file, path=os.environ.get("PATH", os.defpath))
    if found is None:
        raise ExecNotFoundError(file)
    return os.path.abspath(found)


class Factory(ABC):
    """Builds Commands. Swap in cmdseam.fake.FakeFactory for tests."""

    @abstractmethod
    def command(self, name: str, *args: str) -> Command: ...

    @abstractmethod
    def command_context(self, ctx: Context, name: str, *args: str) -> Command:
        """A Command that is killed if ctx fires while it runs."""

    @abstractmethod
    def look_path(self, file: str) -> str: ...


class OsFactory(Factory):
    """Factory for real processes."""

    def command(self, name: str, *args: str) -> Command:
        return self._build(name, args, None)

    def command_context(self, ctx: Context, name: str, *args: str) -> Command:
        if ctx is None:
            raise ValueError("command_context requires a Context")
        return self._build(name, args, ctx)

    def look_path(self, file: str) -> str:
        return look_path(file)

    def _build(self, name: str, args: tuple, ctx: Context | None) -> OsCommand:
        path, err = name, None
        if not os.path.dirname(name):
            try:
                path = self.look_path(name)
            except ExecNotFoundError as e:
                err = e
        return OsCommand(path, [name, *args], lookup_err=err, context=ctx)

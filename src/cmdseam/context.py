"""Cancellation/deadline signal bound to a Command at construction time."""

import threading
import time
from collections.abc import Callable

from cmdseam.errors import Canceled, ContextError, DeadlineExceeded


class Context:
    """A one-shot signal that fires on cancel() or when its deadline passes.

    Children fire with their parent and never outlive the parent's deadline.
    Usable as a context manager, which cancels on exit.
    """

    def __init__(
        self,
        parent: "Context | None" = None,
        timeout: float | None = None,
        deadline: float | None = None,
    ):
        if timeout is not None:
            expires = time.monotonic() + timeout
            deadline = expires if deadline is None else min(deadline, expires)
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)

        self._deadline = deadline
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._err: ContextError | None = None
        self._callbacks: list[Callable[["Context"], None]] = []
        self._timer: threading.Timer | None = None
        self._parent = parent

        if parent is not None:
            parent.add_done_callback(self._on_parent_done)
        if deadline is not None and not self._event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._fire(DeadlineExceeded())
            else:
                self._timer = threading.Timer(remaining, self._fire, args=(DeadlineExceeded(),))
                self._timer.daemon = True
                self._timer.start()

    @classmethod
    def background(cls) -> "Context":
        """A context that never fires on its own."""
        return cls()

    @property
    def deadline(self) -> float | None:
        """Expiry as a time.monotonic() value, or None."""
        return self._deadline

    @property
    def done(self) -> bool:
        return self._event.is_set()

    @property
    def err(self) -> ContextError | None:
        """Why the context fired, or None while it has not."""
        return self._err

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context fires. Returns True if it did."""
        return self._event.wait(timeout)

    def cancel(self) -> None:
        self._fire(Canceled())

    def add_done_callback(self, fn: Callable[["Context"], None]) -> None:
        """Call fn(ctx) once the context fires (immediately if it already has)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return
        fn(self)

    def remove_done_callback(self, fn: Callable[["Context"], None]) -> None:
        """Forget fn if it has not run yet."""
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def _on_parent_done(self, parent: "Context") -> None:
        self._fire(parent.err)

    def _fire(self, err: ContextError | None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._err = err or Canceled()
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._timer is not None:
            self._timer.cancel()
        if self._parent is not None:
            self._parent.remove_done_callback(self._on_parent_done)
            self._parent = None
        for fn in callbacks:
            fn(self)

    def __enter__(self) -> "Context":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()

"""
Request-scoped execution context.

Every store and driver call receives a ``RequestContext``. Long-running work,
in particular the short ID allocation loop, calls ``check()`` between steps
so a cancelled or expired request stops promptly.
"""
import threading
import time
from typing import Optional

from memostore.errors import Cancelled, DeadlineExceeded
from memostore.logging import new_request_id


class RequestContext:
    def __init__(
        self,
        deadline: Optional[float] = None,
        parent: Optional["RequestContext"] = None,
        request_id: Optional[str] = None,
    ):
        # deadline is a time.monotonic() timestamp
        if request_id is None:
            request_id = parent.request_id if parent is not None else new_request_id()
        self.request_id = request_id
        self._cancelled = threading.Event()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> "RequestContext":
        """A context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float, parent: Optional["RequestContext"] = None) -> "RequestContext":
        return cls(deadline=time.monotonic() + seconds, parent=parent)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def err(self) -> Optional[Cancelled]:
        """Return the error this context would raise, or None while it is live."""
        if self.cancelled:
            return Cancelled("request cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DeadlineExceeded("request deadline exceeded")
        return None

    def check(self) -> None:
        err = self.err()
        if err is not None:
            raise err


def ensure_context(ctx: Optional[RequestContext]) -> RequestContext:
    return ctx if ctx is not None else RequestContext.background()

"""Per-session publish/subscribe bus.

Each :class:`~webext_authn.session.Session` owns exactly one
:class:`SessionEvents` instance; it is created and torn down with the
session.  Signal kinds are a closed enum and every kind has its own frozen
payload type, so listeners receive a typed value rather than positional
arguments.

Dispatch is synchronous: listeners run to completion in registration order
before :meth:`SessionEvents.emit` returns.  A listener that returns an
awaitable (e.g. an ``async def`` function) has that awaitable scheduled as a
task on the running loop; :meth:`SessionEvents.join` waits for those tasks
and re-raises the first failure.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, ClassVar, Union

_LOG = logging.getLogger("webext-authn.events")


class SessionEvent(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    ERROR = "error"
    SESSION_EXPIRED = "sessionExpired"
    SESSION_EXTENDED = "sessionExtended"


@dataclass(frozen=True, slots=True)
class LoginSignal:
    kind: ClassVar[SessionEvent] = SessionEvent.LOGIN


@dataclass(frozen=True, slots=True)
class LogoutSignal:
    kind: ClassVar[SessionEvent] = SessionEvent.LOGOUT


@dataclass(frozen=True, slots=True)
class ErrorSignal:
    kind: ClassVar[SessionEvent] = SessionEvent.ERROR

    tag: str
    error: BaseException


@dataclass(frozen=True, slots=True)
class SessionExpiredSignal:
    kind: ClassVar[SessionEvent] = SessionEvent.SESSION_EXPIRED


@dataclass(frozen=True, slots=True)
class SessionExtendedSignal:
    kind: ClassVar[SessionEvent] = SessionEvent.SESSION_EXTENDED

    expires_in: int


Signal = Union[
    LoginSignal,
    LogoutSignal,
    ErrorSignal,
    SessionExpiredSignal,
    SessionExtendedSignal,
]

Listener = Callable[[Signal], Union[Awaitable[None], None]]


class SessionEvents:
    """Event bus with a fixed set of signal kinds."""

    def __init__(self) -> None:
        self._listeners: dict[SessionEvent, list[Listener]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()
        self._failures: list[BaseException] = []

    # ------------------------------------------------------------------ #
    # Subscription                                                       #
    # ------------------------------------------------------------------ #
    def on(self, kind: SessionEvent, listener: Listener) -> Callable[[], None]:
        """Register *listener* for *kind*; return a function that removes it."""
        self._listeners[SessionEvent(kind)].append(listener)
        return lambda: self.off(kind, listener)

    def once(self, kind: SessionEvent, listener: Listener) -> Callable[[], None]:
        """Register *listener* for the next *kind* signal only."""

        def _wrapper(signal: Signal):
            self.off(kind, _wrapper)
            return listener(signal)

        return self.on(kind, _wrapper)

    def off(self, kind: SessionEvent, listener: Listener) -> None:
        listeners = self._listeners.get(SessionEvent(kind), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, kind: SessionEvent) -> int:
        return len(self._listeners.get(SessionEvent(kind), []))

    # ------------------------------------------------------------------ #
    # Dispatch                                                           #
    # ------------------------------------------------------------------ #
    def emit(self, signal: Signal) -> bool:
        """Deliver *signal*; return True if at least one listener ran.

        Coroutine listeners require a running event loop.
        """
        listeners = list(self._listeners.get(signal.kind, []))
        for listener in listeners:
            result = listener(signal)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        return bool(listeners)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOG.error("Session event listener failed: %s", exc, exc_info=exc)
            self._failures.append(exc)

    async def join(self) -> None:
        """Wait for scheduled listener tasks; re-raise the first failure."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._failures:
            failure = self._failures[0]
            self._failures.clear()
            raise failure

    def close(self) -> None:
        """Drop every listener; pending listener tasks keep running."""
        self._listeners.clear()

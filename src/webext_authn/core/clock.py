"""Injectable time source.

Token expiry, the session-expiry timer and DPoP ``iat`` claims all read the
time through a ``Clock`` so tests can freeze it.  A clock returns UNIX
seconds; session expiration dates are epoch *milliseconds*, see
:func:`now_ms`.

Example
-------
>>> now_ms(lambda: 12.5)
12500
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Zero-argument callable returning UNIX seconds."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Wall-clock time.

    Returns
    -------
    float
        ``time.time()``.
    """
    return time.time()


def now_ms(clock: Clock = default_clock) -> int:
    """Read *clock* in epoch milliseconds.

    Parameters
    ----------
    clock:
        Time source; the wall clock unless a test injects one.

    Returns
    -------
    int
        Milliseconds since the UNIX epoch, truncated.
    """
    return int(clock() * 1000)

"""Clock abstraction for testable time handling in the session core.

This module defines a `Clock` protocol representing callables that return the
current UNIX timestamp as ``float``.  Token issuance, expiry checks and the
SRP proof timestamp MUST depend on an injected ``Clock`` instance rather than
calling ``time.time()`` or ``datetime.now()`` directly.

Example
-------
>>> from cognito_client.clock import default_clock
>>> now = default_clock()
>>> isinstance(now, float)
True
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Default implementation that delegates to ``time.time()``.

    Returns
    -------
    float
        Seconds since the UNIX epoch.
    """
    return time.time()


def utc_datetime(clock: Clock = default_clock) -> datetime:
    """Return the clock's current instant as an aware UTC ``datetime``."""
    return datetime.fromtimestamp(clock(), tz=timezone.utc)

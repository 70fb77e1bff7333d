"""Single-shot, resettable watchdog that nudges a silent learner."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

DEFAULT_INACTIVITY_SECONDS = 7.0


class InactivityTimer:
    """At most one pending timer; re-arming replaces it instead of stacking.

    The callback runs on the event loop the timer was created with, exactly once
    per ``arm()`` unless ``cancel()`` or another ``arm()`` comes first.
    """

    def __init__(
        self,
        on_timeout: Callable[[], None],
        *,
        interval: float = DEFAULT_INACTIVITY_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._on_timeout = on_timeout
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def deadline(self) -> Optional[float]:
        """Loop time at which the pending timer fires, if any."""

        return self._handle.when() if self._handle is not None else None

    def arm(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._on_timeout()

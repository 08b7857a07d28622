"""Countdown timer driven by real elapsed time, not by tick delivery."""

import asyncio
import logging
import time
from collections.abc import Callable

from debatemate.errors import ValidationError

logger = logging.getLogger(__name__)

# Floor for the sleep between ticks so a late wake-up never spins.
_MIN_TICK_DELAY_SEC = 0.01


class CountdownTimer:
    """Whole-second countdown with start/pause/reset.

    The timer never decrements below zero and stops itself on reaching zero.
    Elapsed time is read from ``clock`` (monotonic by default), so a process
    that is suspended for several seconds catches up by exactly the elapsed
    whole seconds on the next sync, one decrement at a time.

    When started inside a running asyncio loop, a background task calls
    :meth:`sync` at each whole-second boundary. Outside a loop the timer is
    purely pollable: callers drive it with :meth:`sync`.
    """

    def __init__(
        self,
        time_left: int,
        name: str = "timer",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if time_left < 0:
            raise ValidationError(f"Timer '{name}' cannot start with negative time: {time_left}")
        self.name = name
        self._clock = clock
        self._time_left = int(time_left)
        self._running = False
        self._anchor = 0.0      # clock value at which the current run's seconds are counted from
        self._consumed = 0      # whole seconds already applied since _anchor
        self._carry = 0.0       # partial second left over from the last pause
        self._task: asyncio.Task | None = None
        self._listeners: list[Callable[["CountdownTimer"], None]] = []

    @property
    def time_left(self) -> int:
        return self._time_left

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, listener: Callable[["CountdownTimer"], None]) -> Callable[[], None]:
        """Register a listener called after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self._running or self._time_left == 0:
            return
        self._running = True
        self._anchor = self._clock() - self._carry
        self._consumed = 0
        self._carry = 0.0
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._task = loop.create_task(self._run())
        logger.debug("Timer %s started at %ds", self.name, self._time_left)
        self._notify()

    def pause(self) -> None:
        if not self._running:
            return
        self.sync()
        if not self._running:
            # sync() ran the timer down to zero
            return
        elapsed = self._clock() - self._anchor
        self._carry = max(0.0, min(elapsed - self._consumed, 1.0))
        self._running = False
        self._cancel_task()
        logger.debug("Timer %s paused at %ds", self.name, self._time_left)
        self._notify()

    def reset(self, to: int) -> None:
        if to < 0:
            raise ValidationError(f"Timer '{self.name}' cannot be reset to negative time: {to}")
        self._running = False
        self._cancel_task()
        self._time_left = int(to)
        self._carry = 0.0
        self._consumed = 0
        logger.debug("Timer %s reset to %ds", self.name, self._time_left)
        self._notify()

    def sync(self) -> int:
        """Apply whole seconds elapsed since the last sync. Returns how many were applied."""
        if not self._running:
            return 0
        due = int(self._clock() - self._anchor) - self._consumed
        applied = 0
        while due > 0 and self._time_left > 0:
            self._time_left -= 1
            self._consumed += 1
            due -= 1
            applied += 1
            if self._time_left == 0:
                self._running = False
                self._carry = 0.0
                self._cancel_task()
                logger.debug("Timer %s expired", self.name)
            self._notify()
        return applied

    async def _run(self) -> None:
        while self._running:
            elapsed = self._clock() - self._anchor
            delay = (self._consumed + 1) - elapsed
            await asyncio.sleep(max(delay, _MIN_TICK_DELAY_SEC))
            self.sync()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def __repr__(self) -> str:
        return f"CountdownTimer(name={self.name!r}, time_left={self._time_left}, running={self._running})"

"""Cooperative cancellation for one agent run.

The loop polls ``token.cancelled`` at every chunk it receives from the model
and before every tool it executes.  A token is cancelled either explicitly
(client disconnect, ``cancel_agent`` message) or by its wall-clock deadline.
Awaits that may stall (stream reads, planner calls, tools) go through
``token.wait`` so the deadline also interrupts them.
"""

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

from design_agents.errors import DeadlineExceeded

DEFAULT_TIMEOUT_S = 30.0

T = TypeVar("T")


class CancellationToken:
    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._deadline = clock() + timeout if timeout else None
        self._cancelled = False
        self._expired = False

    def cancel(self) -> None:
        self._cancelled = True

    def expire(self) -> None:
        """Treat the deadline as passed."""
        self._expired = True

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when the run is unbounded."""
        if self._deadline is None:
            return None
        if self._expired:
            return 0.0
        return max(0.0, self._deadline - self._clock())

    async def wait(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* within the remaining budget.

        Raises DeadlineExceeded, after expiring the token, when time runs out.
        """
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, remaining)
        except asyncio.TimeoutError:
            self.expire()
            raise DeadlineExceeded("Request time budget exhausted") from None

    @property
    def timed_out(self) -> bool:
        if self._expired:
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled or self.timed_out

    @property
    def reason(self) -> str | None:
        """``"cancelled"``, ``"timeout"`` or None while the run may continue."""
        if self._cancelled:
            return "cancelled"
        if self.timed_out:
            return "timeout"
        return None

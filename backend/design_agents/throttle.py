"""Per-call rate limiting of live preview events."""

import time
from typing import Callable

STREAM_THROTTLE_MS = 120


class ThrottledPreviewEmitter:
    """Decides whether a preview for a given call may be sent now.

    The first preview for a call id and every terminal flush always pass;
    anything else must wait ``interval_ms`` since the last preview sent for the
    same id.  Windows are never shared between call ids.
    """

    def __init__(
        self,
        interval_ms: int = STREAM_THROTTLE_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval_ms / 1000.0
        self._clock = clock
        self._last_emit: dict[str, float] = {}

    def should_emit(self, call_id: str, terminal: bool = False) -> bool:
        if terminal:
            return True
        last = self._last_emit.get(call_id)
        if last is None:
            return True
        return self._clock() - last >= self.interval

    def mark(self, call_id: str) -> None:
        """Record that a preview for *call_id* was just sent."""
        self._last_emit[call_id] = self._clock()

    def forget(self, call_id: str) -> None:
        self._last_emit.pop(call_id, None)

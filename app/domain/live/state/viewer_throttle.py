"""Viewer-count broadcast throttling."""

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _LastBroadcast:
    count: int
    at: float


class ViewerCountThrottle:
    """Decide whether a viewer-count change is worth broadcasting.

    The first change seen for a session always goes out. After that a change is
    broadcast only once ``interval_seconds`` have passed since the previous
    broadcast and the count moved by at least ``threshold_percent`` (relative)
    or ``threshold_absolute`` (absolute) since then.

    State is process-local and keyed by session id.
    """

    def __init__(
        self,
        interval_seconds: float = 5.0,
        threshold_percent: float = 0.1,
        threshold_absolute: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval_seconds = interval_seconds
        self.threshold_percent = threshold_percent
        self.threshold_absolute = threshold_absolute
        self._clock = clock
        self._last: dict[str, _LastBroadcast] = {}

    def should_broadcast(self, session_id: str, count: int) -> bool:
        """Return True and remember the broadcast if ``count`` should be sent now."""
        now = self._clock()
        last = self._last.get(session_id)

        if last is None:
            self._last[session_id] = _LastBroadcast(count=count, at=now)
            return True

        delta = abs(count - last.count)
        if delta == 0:
            return False

        percent = delta / last.count if last.count > 0 else 1.0
        if now - last.at < self.interval_seconds:
            return False
        if percent < self.threshold_percent and delta < self.threshold_absolute:
            return False

        self._last[session_id] = _LastBroadcast(count=count, at=now)
        return True

    def reset(self, session_id: str) -> None:
        self._last.pop(session_id, None)

    @property
    def tracked_sessions(self) -> int:
        return len(self._last)

"""Elapsed-time estimate of the character being spoken."""

from __future__ import annotations

import math


class PlaybackClock:
    """Estimates the spoken character offset from wall-clock time.

    All epochs are in milliseconds. The estimate advances at
    ``baseline_cps * rate`` characters per second from ``offset``, freezes
    while paused and excludes paused time once resumed. Between starts the
    estimate never decreases.
    """

    def __init__(
        self,
        text_length: int,
        baseline_cps: float = 12.0,
        rate: float = 1.0,
        offset: int = 0,
    ) -> None:
        self.text_length = text_length
        self.baseline_cps = baseline_cps
        self.rate = rate
        self.offset = offset
        self.start_epoch: float | None = None
        self.pause_epoch: float | None = None
        self._last = -1

    @property
    def started(self) -> bool:
        return self.start_epoch is not None

    @property
    def paused(self) -> bool:
        return self.pause_epoch is not None

    def start(self, now: float) -> None:
        self.start_epoch = now
        self.pause_epoch = None
        self._last = -1

    def pause(self, now: float) -> None:
        if self.start_epoch is None or self.pause_epoch is not None:
            return
        self.pause_epoch = now

    def resume(self, now: float) -> None:
        """Shift the start epoch by the pause length so time paused is not counted."""
        if self.start_epoch is None or self.pause_epoch is None:
            return
        self.start_epoch += now - self.pause_epoch
        self.pause_epoch = None

    def estimate(self, now: float) -> int:
        """Return the estimated character index at *now*, or -1 before start."""
        if self.start_epoch is None or self.text_length <= 0:
            return -1
        if self.pause_epoch is not None:
            now = self.pause_epoch
        elapsed_ms = max(0.0, now - self.start_epoch)
        chars = math.floor(elapsed_ms / 1000 * self.baseline_cps * self.rate)
        index = min(max(self.offset + chars, 0), self.text_length - 1)
        # Never report a position earlier than one already reported
        self._last = max(self._last, index)
        return self._last

    def rebaseline(self, now: float, rate: float, position: int | None = None) -> None:
        """Switch to *rate* so that the estimate at *now* equals *position*.

        Without *position* the current estimate is kept. A rebuilt session
        passes the offset it resumes speaking from, which may sit at the
        start of the word currently highlighted.
        """
        target = self.estimate(now) if position is None else position
        self.rate = rate
        self.offset = max(target, 0)
        self.start_epoch = now
        self.pause_epoch = None
        self._last = -1

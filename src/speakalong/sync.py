"""Merge engine boundary events and clock estimates into one active position."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, ClassVar

from speakalong.clock import PlaybackClock
from speakalong.segmenter import Segmentation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncState:
    """Presentation-facing position: active character, word and sentence."""

    active_char_index: int = -1
    active_word_index: int = -1
    active_sentence_index: int = -1

    IDLE: ClassVar[SyncState]


SyncState.IDLE = SyncState()


class SyncMode(enum.Enum):
    PROBING = "probing"      # waiting for a first boundary event
    EVENTS = "events"        # the engine emits boundaries; estimates unused
    ESTIMATE = "estimate"    # no boundaries arrived in time; clock drives


class SynchronizationController:
    """Produces the authoritative :class:`SyncState` for one session at a time.

    Boundary events are applied as soon as they arrive. A repeating frame
    tick applies the clock estimate only once the session has been found not
    to emit boundaries. Updates never move the position backward.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        frame_interval: float = 1 / 60,
        boundary_grace: float = 0.75,
    ) -> None:
        self._loop = loop
        self._frame_interval = frame_interval
        self._boundary_grace = boundary_grace
        self._state = SyncState.IDLE
        self._segmentation = Segmentation()
        self._clock: PlaybackClock | None = None
        self._session_id: int | None = None
        self._mode = SyncMode.PROBING
        self._probe_deadline: float | None = None
        self._tick_handle: asyncio.TimerHandle | None = None
        self._subscribers: list[Callable[[SyncState], None]] = []

    # -- read side ---------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def mode(self) -> SyncMode:
        return self._mode

    @property
    def session_id(self) -> int | None:
        return self._session_id

    @property
    def polling(self) -> bool:
        return self._tick_handle is not None

    def subscribe(self, callback: Callable[[SyncState], None]) -> Callable[[], None]:
        """Register *callback* for state changes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -- session lifecycle -------------------------------------------------

    def begin(
        self,
        session_id: int,
        segmentation: Segmentation,
        clock: PlaybackClock,
        position: int = -1,
    ) -> None:
        """Attach a new session; the position starts at -1 unless seeded."""
        self._cancel_tick()
        self._session_id = session_id
        self._segmentation = segmentation
        self._clock = clock
        self._mode = SyncMode.PROBING
        self._probe_deadline = None
        self._publish(self._derive(position))
        logger.debug("Sync attached to session %d at %d", session_id, position)

    def start_polling(self) -> None:
        """Start (or restart after a pause) the frame tick."""
        if self._session_id is None:
            return
        self._cancel_tick()
        if self._mode is SyncMode.PROBING:
            self._probe_deadline = self._loop.time() + self._boundary_grace
        self._schedule_tick()

    def suspend(self) -> None:
        """Stop polling without forgetting the session (pause)."""
        self._cancel_tick()

    def reset(self) -> None:
        """Forget the session and clear the position (stop, end, error)."""
        self._cancel_tick()
        self._session_id = None
        self._clock = None
        self._mode = SyncMode.PROBING
        self._probe_deadline = None
        self._publish(SyncState.IDLE)

    # -- update sources ----------------------------------------------------

    def on_boundary(self, session_id: int, char_index: int) -> None:
        """Apply an engine boundary event for *session_id*."""
        if session_id != self._session_id:
            logger.debug("Ignoring boundary %d from stale session %s", char_index, session_id)
            return
        if self._mode is not SyncMode.EVENTS:
            logger.debug("Session %d emits boundary events", session_id)
            self._mode = SyncMode.EVENTS
        self._apply(char_index)

    def tick(self) -> None:
        """One polling frame: maybe apply the clock estimate, then reschedule."""
        self._tick_handle = None
        if self._session_id is None or self._clock is None:
            return

        if self._mode is SyncMode.PROBING:
            if self._probe_deadline is not None and self._loop.time() >= self._probe_deadline:
                logger.debug(
                    "No boundary events within %.2fs for session %d, estimating",
                    self._boundary_grace,
                    self._session_id,
                )
                self._mode = SyncMode.ESTIMATE

        if self._mode is SyncMode.ESTIMATE:
            self._apply(self._clock.estimate(self._loop.time() * 1000))

        self._schedule_tick()

    # -- internals ---------------------------------------------------------

    def _schedule_tick(self) -> None:
        self._tick_handle = self._loop.call_later(self._frame_interval, self.tick)

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _apply(self, char_index: int) -> None:
        text_length = len(self._segmentation.text)
        if char_index < 0 or text_length == 0:
            return
        # Engines may report offsets past the end; clamp rather than trust them
        char_index = min(char_index, text_length - 1)
        if char_index < self._state.active_char_index:
            return
        self._publish(self._derive(char_index))

    def _derive(self, char_index: int) -> SyncState:
        if char_index < 0:
            return SyncState.IDLE
        word_index = self._segmentation.word_at(char_index)
        return SyncState(
            active_char_index=char_index,
            active_word_index=word_index,
            active_sentence_index=self._segmentation.sentence_of(word_index),
        )

    def _publish(self, state: SyncState) -> None:
        if state == self._state:
            return
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

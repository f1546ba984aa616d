"""Playback lifecycle: user commands in, engine callbacks routed to the sync controller."""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Callable

from speakalong.clock import PlaybackClock
from speakalong.config import ReaderConfig
from speakalong.engine import EngineEvent, EventKind, SpeechEngine, Utterance, Voice
from speakalong.errors import EmptyInput, PlaybackEngineError, VoiceUnavailable
from speakalong.segmenter import Segmentation, segment
from speakalong.sync import SynchronizationController

logger = logging.getLogger(__name__)


class PlaybackState(enum.Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"
    STOPPED = "stopped"


# Announced to subscribers, then immediately followed by IDLE
TERMINAL_STATES = frozenset({PlaybackState.ENDED, PlaybackState.ERROR, PlaybackState.STOPPED})


@dataclass
class PlaybackSession:
    """The live synthesis attempt. ``offset`` is where its text begins in the source."""

    session_id: int
    text: str
    voice_id: str
    rate: float
    language_tag: str
    offset: int = 0
    start_epoch: float | None = None
    pause_epoch: float | None = None
    state: PlaybackState = PlaybackState.IDLE


class PlaybackStateMachine:
    """Owns the single active session and reconciles commands with engine callbacks.

    Transitions into SPEAKING and PAUSED happen only when the engine
    acknowledges them. Callbacks carry the id of the session that caused
    them, and anything not from the current session is dropped.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        controller: SynchronizationController,
        loop: asyncio.AbstractEventLoop,
        config: ReaderConfig | None = None,
    ) -> None:
        self._engine = engine
        self._controller = controller
        self._loop = loop
        self._config = config or ReaderConfig()
        self._ids = itertools.count(1)
        self._state = PlaybackState.IDLE
        self._session: PlaybackSession | None = None
        self._voice: Voice | None = None
        self._segmentation = Segmentation()
        self._clock: PlaybackClock | None = None
        self._pending_speak: asyncio.TimerHandle | None = None
        self._pause_requested = False  # pause asked for before the rebuilt session started
        self._state_subscribers: list[Callable[[PlaybackState], None]] = []
        self._error_subscribers: list[Callable[[PlaybackEngineError], None]] = []
        self._handlers = {
            EventKind.START: self._handle_start,
            EventKind.BOUNDARY: self._handle_boundary,
            EventKind.PAUSE: self._handle_pause,
            EventKind.RESUME: self._handle_resume,
            EventKind.END: self._handle_end,
            EventKind.ERROR: self._handle_error,
        }
        engine.subscribe(self._on_engine_event)

    # -- read side ---------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    @property
    def is_active(self) -> bool:
        """True while a session exists, including one awaiting its start."""
        return self._session is not None

    def subscribe(self, callback: Callable[[PlaybackState], None]) -> None:
        self._state_subscribers.append(callback)

    def on_error(self, callback: Callable[[PlaybackEngineError], None]) -> None:
        self._error_subscribers.append(callback)

    # -- commands ----------------------------------------------------------

    def play(
        self,
        text: str,
        voice: Voice | None,
        rate: float = 1.0,
        segmentation: Segmentation | None = None,
    ) -> PlaybackSession:
        """Start speaking *text*, superseding any session in progress.

        Raises:
            VoiceUnavailable: If no voice is selected.
            EmptyInput: If *text* is blank.
        """
        if voice is None:
            raise VoiceUnavailable()
        if not text or not text.strip():
            raise EmptyInput()
        if segmentation is None or segmentation.text != text:
            segmentation = segment(text)

        self._voice = voice
        self._segmentation = segmentation
        clock = PlaybackClock(len(text), self._config.baseline_cps, self._config.clamp_rate(rate))
        # A superseded session no longer counts as speaking
        self._set_state(PlaybackState.IDLE)
        self._pause_requested = False
        return self._start_session(clock, offset=0, position=-1)

    def pause(self) -> None:
        """Pause the speaking session.

        During a rate rebuild's settle delay the engine holds no utterance
        yet, so the pause is issued once the rebuilt session starts.
        """
        if self._state is not PlaybackState.SPEAKING:
            return
        self._controller.suspend()
        if self._pending_speak is not None:
            self._pause_requested = True
            return
        self._engine.pause()

    def resume(self) -> None:
        if self._pause_requested:
            self._pause_requested = False
            return
        if self._state is not PlaybackState.PAUSED:
            return
        self._engine.resume()

    def stop(self) -> None:
        """Cancel playback from any state and clear the highlighted position."""
        had_session = self._session is not None
        self._pause_requested = False
        self._cancel_pending_speak()
        self._controller.reset()
        self._engine.cancel()
        self._session = None
        self._clock = None
        if had_session:
            logger.info("Playback stopped")
        if self._state is not PlaybackState.IDLE:
            self._set_state(PlaybackState.STOPPED)

    def set_rate(self, rate: float) -> PlaybackSession | None:
        """Apply *rate* to the playing session, keeping its apparent position.

        The session is rebuilt to speak from the start of the active word;
        the previous position stays highlighted until speech passes it.
        """
        rate = self._config.clamp_rate(rate)
        session = self._session
        if session is None or self._clock is None:
            return None
        if self._state not in (PlaybackState.SPEAKING, PlaybackState.PAUSED):
            return None

        position = self._controller.state.active_char_index
        if position >= 0:
            offset = self._segmentation.word_start_at_or_before(position)
        else:
            offset = session.offset
        logger.info("Rate %.2f -> %.2f, resuming at offset %d", session.rate, rate, offset)

        clock = self._clock
        clock.rebaseline(self._now(), rate, position=offset)
        return self._start_session(clock, offset=offset, position=position)

    # -- session plumbing --------------------------------------------------

    def _start_session(self, clock: PlaybackClock, offset: int, position: int) -> PlaybackSession:
        voice = self._voice
        text = self._segmentation.text
        previous = self._session is not None or self._engine.is_speaking or self._engine.is_paused

        self._cancel_pending_speak()
        if previous:
            self._engine.cancel()

        session = PlaybackSession(
            session_id=next(self._ids),
            text=text,
            voice_id=voice.id,
            rate=clock.rate,
            language_tag=voice.language_tag,
            offset=offset,
        )
        self._session = session
        self._clock = clock
        self._controller.begin(session.session_id, self._segmentation, clock, position=position)

        utterance = Utterance(
            session_id=session.session_id,
            text=text[offset:],
            voice_id=voice.id,
            rate=session.rate,
            language_tag=voice.language_tag,
        )
        logger.info(
            "Session %d: %d chars with voice %s at rate %.2f",
            session.session_id,
            len(utterance.text),
            voice.name,
            session.rate,
        )
        if previous and self._config.settle_delay > 0:
            self._pending_speak = self._loop.call_later(
                self._config.settle_delay, self._speak, utterance
            )
        else:
            self._speak(utterance)
        return session

    def _speak(self, utterance: Utterance) -> None:
        self._pending_speak = None
        try:
            self._engine.speak(utterance)
        except Exception as exc:
            logger.warning("Engine rejected session %d: %s", utterance.session_id, exc)
            self._fail(exc)

    def _cancel_pending_speak(self) -> None:
        if self._pending_speak is not None:
            self._pending_speak.cancel()
            self._pending_speak = None

    # -- engine callbacks --------------------------------------------------

    def _on_engine_event(self, event: EngineEvent) -> None:
        session = self._session
        if session is None or event.session_id != session.session_id:
            logger.debug("Dropping %s from stale session %d", event.kind.value, event.session_id)
            return
        self._handlers[event.kind](session, event)

    def _handle_start(self, session: PlaybackSession, event: EngineEvent) -> None:
        now = self._now()
        session.start_epoch = now
        session.pause_epoch = None
        self._clock.start(now)
        self._set_state(PlaybackState.SPEAKING)
        if self._pause_requested:
            self._pause_requested = False
            logger.debug("Session %d: applying deferred pause", session.session_id)
            self._engine.pause()
            return
        self._controller.start_polling()

    def _handle_boundary(self, session: PlaybackSession, event: EngineEvent) -> None:
        if self._state is not PlaybackState.SPEAKING:
            return
        self._controller.on_boundary(session.session_id, session.offset + max(event.char_index, 0))

    def _handle_pause(self, session: PlaybackSession, event: EngineEvent) -> None:
        now = self._now()
        session.pause_epoch = now
        self._clock.pause(now)
        self._controller.suspend()
        self._set_state(PlaybackState.PAUSED)

    def _handle_resume(self, session: PlaybackSession, event: EngineEvent) -> None:
        session.pause_epoch = None
        self._clock.resume(self._now())
        self._set_state(PlaybackState.SPEAKING)
        self._controller.start_polling()

    def _handle_end(self, session: PlaybackSession, event: EngineEvent) -> None:
        logger.info("Session %d finished", session.session_id)
        self._finish(PlaybackState.ENDED)

    def _handle_error(self, session: PlaybackSession, event: EngineEvent) -> None:
        logger.warning("Session %d failed: %s", session.session_id, event.cause)
        self._fail(event.cause)

    def _fail(self, cause: object) -> None:
        self._finish(PlaybackState.ERROR)
        error = PlaybackEngineError(cause)
        for callback in list(self._error_subscribers):
            callback(error)

    def _finish(self, terminal: PlaybackState) -> None:
        self._pause_requested = False
        self._cancel_pending_speak()
        self._controller.reset()
        self._session = None
        self._clock = None
        self._set_state(terminal)

    # -- helpers -----------------------------------------------------------

    def _now(self) -> float:
        return self._loop.time() * 1000

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state and state not in TERMINAL_STATES:
            return
        if self._session is not None:
            self._session.state = state
        self._state = state
        for callback in list(self._state_subscribers):
            callback(state)
        if state in TERMINAL_STATES:
            self._set_state(PlaybackState.IDLE)

"""Shared fixtures: a hand-driven event loop and a scriptable speech engine."""

from __future__ import annotations

import heapq
import itertools

import pytest

from speakalong.config import ReaderConfig
from speakalong.engine import EngineEvent, EventKind, SpeechEngine, Utterance, Voice
from speakalong.state_machine import PlaybackStateMachine
from speakalong.sync import SynchronizationController


class ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualLoop:
    """Implements the slice of the asyncio loop API the reader uses; time moves only on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay, callback, *args) -> ManualHandle:
        handle = ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle, callback, args))
        return handle

    def call_soon(self, callback, *args) -> ManualHandle:
        return self.call_later(0, callback, *args)

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def advance(self, seconds: float = 0.0) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            callback(*args)
        self.now = target


class FakeEngine(SpeechEngine):
    """Records commands; tests fire the engine's callbacks explicitly."""

    def __init__(self, voices: list[Voice] | None = None) -> None:
        super().__init__()
        self.voices = list(voices or [])
        self.calls: list[str] = []
        self.spoken: list[Utterance] = []
        self._speaking = False
        self._paused = False

    # commands
    def list_voices(self) -> list[Voice]:
        return list(self.voices)

    def speak(self, utterance: Utterance) -> None:
        self.calls.append("speak")
        self.spoken.append(utterance)
        self._speaking = True
        self._paused = False

    def pause(self) -> None:
        self.calls.append("pause")
        self._paused = True

    def resume(self) -> None:
        self.calls.append("resume")
        self._paused = False

    def cancel(self) -> None:
        self.calls.append("cancel")
        self._speaking = False
        self._paused = False

    @property
    def is_speaking(self) -> bool:
        return self._speaking and not self._paused

    @property
    def is_paused(self) -> bool:
        return self._speaking and self._paused

    # callbacks
    @property
    def last_id(self) -> int:
        return self.spoken[-1].session_id

    def fire(self, kind: EventKind, session_id: int | None = None, **kwargs) -> None:
        sid = self.last_id if session_id is None else session_id
        self._emit(EngineEvent(kind, sid, **kwargs))

    def started(self, session_id: int | None = None) -> None:
        self.fire(EventKind.START, session_id)

    def boundary(self, char_index: int, session_id: int | None = None) -> None:
        self.fire(EventKind.BOUNDARY, session_id, char_index=char_index)

    def ended(self, session_id: int | None = None) -> None:
        self._speaking = False
        self.fire(EventKind.END, session_id)

    def failed(self, cause: object, session_id: int | None = None) -> None:
        self._speaking = False
        self.fire(EventKind.ERROR, session_id, cause=cause)

    def set_voices(self, voices: list[Voice]) -> None:
        self.voices = list(voices)
        self._notify_voices_changed()


ENGLISH = Voice(id="en-in-1", name="Heera", language_tag="en-IN")
HINDI = Voice(id="hi-in-1", name="Kalpana", language_tag="hi-IN")


@pytest.fixture
def loop() -> ManualLoop:
    return ManualLoop()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine([ENGLISH, HINDI])


@pytest.fixture
def config() -> ReaderConfig:
    return ReaderConfig(settle_delay=0, boundary_grace=0.5)


@pytest.fixture
def controller(loop: ManualLoop, config: ReaderConfig) -> SynchronizationController:
    return SynchronizationController(
        loop, frame_interval=config.frame_interval, boundary_grace=config.boundary_grace
    )


@pytest.fixture
def machine(engine, controller, loop, config) -> PlaybackStateMachine:
    return PlaybackStateMachine(engine, controller, loop, config)

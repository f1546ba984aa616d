"""Speech engine boundary and the pyttsx3 implementation of it."""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable

import pyttsx3

from speakalong.config import ReaderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Voice:
    """A voice offered by the engine's catalogue."""

    id: str
    name: str
    language_tag: str = ""

    @property
    def language(self) -> str:
        """Primary language subtag, e.g. ``"hi"`` for ``"hi-IN"``."""
        return self.language_tag.split("-")[0].lower()


@dataclass(frozen=True)
class Utterance:
    """One ``speak`` request, tagged with the session that issued it."""

    session_id: int
    text: str
    voice_id: str
    rate: float = 1.0
    language_tag: str = ""


class EventKind(enum.Enum):
    START = "start"
    END = "end"
    ERROR = "error"
    PAUSE = "pause"
    RESUME = "resume"
    BOUNDARY = "boundary"


@dataclass(frozen=True)
class EngineEvent:
    """A callback from the engine, scoped to the session that caused it."""

    kind: EventKind
    session_id: int
    char_index: int = -1
    cause: Any = None


EventHandler = Callable[[EngineEvent], None]


class SpeechEngine(abc.ABC):
    """What the playback state machine needs from a speech engine.

    Every callback is delivered as an :class:`EngineEvent` through the
    handlers registered with :meth:`subscribe`, on the same event loop that
    issues commands.
    """

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._voice_callbacks: list[Callable[[], None]] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def on_voices_changed(self, callback: Callable[[], None]) -> None:
        """Call *callback* each time the voice catalogue changes."""
        self._voice_callbacks.append(callback)

    def _emit(self, event: EngineEvent) -> None:
        for handler in list(self._handlers):
            handler(event)

    def _notify_voices_changed(self) -> None:
        for callback in list(self._voice_callbacks):
            callback()

    @abc.abstractmethod
    def list_voices(self) -> list[Voice]: ...

    @abc.abstractmethod
    def speak(self, utterance: Utterance) -> None: ...

    @abc.abstractmethod
    def pause(self) -> None: ...

    @abc.abstractmethod
    def resume(self) -> None: ...

    @abc.abstractmethod
    def cancel(self) -> None: ...

    @property
    @abc.abstractmethod
    def is_speaking(self) -> bool: ...

    @property
    @abc.abstractmethod
    def is_paused(self) -> bool: ...


def normalize_language_tag(raw: Any) -> str:
    """Turn a pyttsx3 language entry into a BCP 47 style tag.

    espeak reports bytes such as ``b"\\x05en-us"``, NSSpeech reports
    ``"en_US"`` and SAPI5 often reports nothing.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    if not raw:
        return ""
    tag = "".join(ch for ch in str(raw) if ch.isprintable()).strip().replace("_", "-")
    parts = [p for p in tag.split("-") if p]
    if not parts:
        return ""
    head = parts[0].lower()
    rest = [p.upper() if len(p) == 2 else p for p in parts[1:]]
    return "-".join([head, *rest])


class Pyttsx3Engine(SpeechEngine):
    """Wraps pyttsx3 as a callback-driven, non-blocking engine.

    The pyttsx3 driver loop is pumped with ``iterate()`` from the asyncio
    loop, so its callbacks run on the loop thread. pyttsx3 cannot pause, so
    a pause stops the driver and remembers the last word offset, and resume
    speaks the remainder with offsets shifted back onto the original text.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        config: ReaderConfig | None = None,
    ) -> None:
        super().__init__()
        self._loop = loop
        self._config = config or ReaderConfig()
        self._engine = pyttsx3.init()
        self._engine.connect("started-utterance", self._on_started)
        self._engine.connect("started-word", self._on_word)
        self._engine.connect("finished-utterance", self._on_finished)
        self._engine.connect("error", self._on_error)
        self._engine.startLoop(False)

        self._current: Utterance | None = None
        self._chunk_offset = 0     # where the chunk being spoken begins in the utterance
        self._position = 0         # last reported boundary, utterance coordinates
        self._paused = False
        self._resuming = False
        self._interrupted = False  # a pause-stop whose finish callback is still due
        self._pump_handle: asyncio.TimerHandle | None = None

        # The catalogue is read lazily; announce it once the loop runs
        self._loop.call_soon(self._notify_voices_changed)

    # -- catalogue ---------------------------------------------------------

    def list_voices(self) -> list[Voice]:
        """Return available voices on this system."""
        voices = []
        for v in self._engine.getProperty("voices"):
            languages = list(getattr(v, "languages", None) or [])
            tag = normalize_language_tag(languages[0]) if languages else ""
            voices.append(Voice(id=v.id, name=v.name or v.id, language_tag=tag))
        return voices

    def refresh_voices(self) -> None:
        """Re-announce the catalogue to subscribers."""
        self._notify_voices_changed()

    # -- commands ----------------------------------------------------------

    def speak(self, utterance: Utterance) -> None:
        self._engine.setProperty("rate", int(self._config.base_wpm * utterance.rate))
        self._engine.setProperty("volume", self._config.volume)
        if utterance.voice_id:
            self._engine.setProperty("voice", utterance.voice_id)

        self._current = utterance
        self._chunk_offset = 0
        self._position = 0
        self._paused = False
        self._resuming = False
        self._interrupted = False
        logger.debug("Speaking session %d (%d chars)", utterance.session_id, len(utterance.text))
        self._engine.say(utterance.text, str(utterance.session_id))
        self._ensure_pumping()

    def pause(self) -> None:
        if self._current is None or self._paused:
            return
        self._paused = True
        self._interrupted = True
        self._engine.stop()
        session_id = self._current.session_id
        self._loop.call_soon(self._emit, EngineEvent(EventKind.PAUSE, session_id))

    def resume(self) -> None:
        if self._current is None or not self._paused:
            return
        self._paused = False
        self._resuming = True
        self._chunk_offset = self._position
        remainder = self._current.text[self._chunk_offset:]
        self._engine.say(remainder, str(self._current.session_id))
        self._ensure_pumping()

    def cancel(self) -> None:
        self._current = None
        self._paused = False
        self._resuming = False
        self._interrupted = False
        self._engine.stop()

    @property
    def is_speaking(self) -> bool:
        return self._current is not None and not self._paused

    @property
    def is_paused(self) -> bool:
        return self._current is not None and self._paused

    # -- driver loop -------------------------------------------------------

    def _ensure_pumping(self) -> None:
        if self._pump_handle is None:
            self._pump_handle = self._loop.call_soon(self._pump)

    def _pump(self) -> None:
        self._pump_handle = None
        try:
            self._engine.iterate()
        except Exception as exc:
            current = self._current
            logger.warning("Speech driver failed: %s", exc)
            self._current = None
            self._paused = False
            self._resuming = False
            self._interrupted = False
            if current is not None:
                self._emit(EngineEvent(EventKind.ERROR, current.session_id, cause=exc))
            return
        if self._current is not None and not self._paused:
            self._pump_handle = self._loop.call_later(self._config.frame_interval, self._pump)

    # -- pyttsx3 callbacks -------------------------------------------------

    def _session_for(self, name: str | None) -> int | None:
        if self._current is None or name != str(self._current.session_id):
            return None
        return self._current.session_id

    def _on_started(self, name: str | None) -> None:
        session_id = self._session_for(name)
        if session_id is None:
            return
        if self._resuming:
            self._resuming = False
            self._emit(EngineEvent(EventKind.RESUME, session_id))
        else:
            self._emit(EngineEvent(EventKind.START, session_id))

    def _on_word(self, name: str | None, location: int, length: int) -> None:
        session_id = self._session_for(name)
        if session_id is None or self._paused:
            return
        self._position = self._chunk_offset + max(location, 0)
        self._emit(EngineEvent(EventKind.BOUNDARY, session_id, char_index=self._position))

    def _on_finished(self, name: str | None, completed: bool) -> None:
        session_id = self._session_for(name)
        if session_id is None:
            return
        # Finishing because of our own pause-stop is not an end
        if self._interrupted and (self._paused or not completed):
            self._interrupted = False
            return
        if self._paused:
            return
        self._current = None
        self._emit(EngineEvent(EventKind.END, session_id))

    def _on_error(self, name: str | None, exception: Exception) -> None:
        session_id = self._session_for(name)
        if session_id is None:
            logger.warning("Speech engine error outside a session: %s", exception)
            return
        self._current = None
        self._paused = False
        self._emit(EngineEvent(EventKind.ERROR, session_id, cause=exception))

"""Reader: wires text, voices, playback and synchronization together."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from speakalong import clipboard, importer, translator
from speakalong.config import ReaderConfig
from speakalong.engine import SpeechEngine, Voice
from speakalong.errors import (
    ClipboardPermissionDenied,
    EmptyInput,
    FileReadError,
    SpeakAlongError,
    TranslationServiceError,
    VoiceUnavailable,
)
from speakalong.segmenter import Segment, Segmentation, segment
from speakalong.state_machine import PlaybackSession, PlaybackStateMachine
from speakalong.sync import SynchronizationController
from speakalong.voices import VoiceCatalogue

logger = logging.getLogger(__name__)


class Reader:
    """The application surface: the text being read and the commands on it.

    Failures of the clipboard, file import and translation are reported to
    :meth:`on_notify` subscribers and leave playback untouched. Translation
    failure keeps the previous text.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        loop: asyncio.AbstractEventLoop,
        config: ReaderConfig | None = None,
        preferred_language: str | None = None,
    ) -> None:
        self._config = config or ReaderConfig()
        self.controller = SynchronizationController(
            loop,
            frame_interval=self._config.frame_interval,
            boundary_grace=self._config.boundary_grace,
        )
        self.playback = PlaybackStateMachine(engine, self.controller, loop, self._config)
        self.catalogue = VoiceCatalogue(engine, preferred_language)
        self._segmentation = segment("")
        self._rate = 1.0
        self._notify_subscribers: list[Callable[[SpeakAlongError], None]] = []
        self.playback.on_error(self._report)

    # -- state -------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._segmentation.text

    @property
    def segmentation(self) -> Segmentation:
        return self._segmentation

    @property
    def rate(self) -> float:
        return self._rate

    def active_word(self) -> Segment | None:
        """The word under the current position, if any."""
        idx = self.controller.state.active_word_index
        if 0 <= idx < len(self._segmentation.words):
            return self._segmentation.words[idx]
        return None

    def on_notify(self, callback: Callable[[SpeakAlongError], None]) -> None:
        """Register *callback* for transient, user-facing failures."""
        self._notify_subscribers.append(callback)

    def _report(self, error: SpeakAlongError) -> None:
        logger.warning("%s", error)
        for callback in list(self._notify_subscribers):
            callback(error)

    # -- text sources ------------------------------------------------------

    def set_text(self, text: str) -> None:
        """Replace the text; playback of the old text is stopped first."""
        if self.playback.is_active:
            self.playback.stop()
        self._segmentation = segment(text)

    def clear(self) -> None:
        self.set_text("")

    def paste(self) -> bool:
        try:
            text = clipboard.read_text()
        except ClipboardPermissionDenied as exc:
            self._report(exc)
            return False
        self.set_text(text)
        return True

    def copy(self) -> bool:
        try:
            clipboard.write_text(self.text)
        except ClipboardPermissionDenied as exc:
            self._report(exc)
            return False
        return True

    def import_file(self, path: str | Path) -> bool:
        try:
            text = importer.read_text_file(path)
        except FileReadError as exc:
            self._report(exc)
            return False
        self.set_text(text)
        return True

    def translate_to(self, language_tag: str) -> bool:
        if not self.text.strip():
            return False
        try:
            translated = translator.translate(
                self.text,
                language_tag,
                url=self._config.translate_url,
                timeout=self._config.translate_timeout,
            )
        except TranslationServiceError as exc:
            self._report(exc)
            return False
        self.set_text(translated)
        return True

    def select_voice(self, voice: Voice | None, translate: bool = True) -> None:
        """Select *voice* and, when there is text, translate it into the voice's language."""
        self.catalogue.select(voice)
        if voice is not None and translate and voice.language_tag and self.text.strip():
            self.translate_to(voice.language_tag)

    # -- playback commands -------------------------------------------------

    def play(self) -> PlaybackSession | None:
        try:
            return self.playback.play(
                self.text, self.catalogue.selected, self._rate, self._segmentation
            )
        except (VoiceUnavailable, EmptyInput) as exc:
            self._report(exc)
            return None

    def pause(self) -> None:
        self.playback.pause()

    def resume(self) -> None:
        self.playback.resume()

    def stop(self) -> None:
        self.playback.stop()

    def set_rate(self, rate: float) -> None:
        self._rate = self._config.clamp_rate(rate)
        self.playback.set_rate(self._rate)

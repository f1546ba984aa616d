"""Voice catalogue: filtering, grouping and preferred-voice selection."""

from __future__ import annotations

import locale
import logging
from typing import Callable

from speakalong.engine import SpeechEngine, Voice

logger = logging.getLogger(__name__)

# Supported languages in display priority order
LANGUAGE_NAMES = {
    "en": "English",
    "hi": "हिन्दी (Hindi)",
    "gu": "ગુજરાતી (Gujarati)",
    "mr": "मराठी (Marathi)",
    "ta": "தமிழ் (Tamil)",
    "te": "తెలుగు (Telugu)",
}

_PRIORITY = {code: i for i, code in enumerate(LANGUAGE_NAMES)}

# Tried in order after the system language
_FALLBACK_TAGS = ("en-IN", "en", "hi-IN")


def system_language() -> str:
    """Primary language subtag of the current locale, or ``""``."""
    lang, _encoding = locale.getlocale()
    if not lang:
        return ""
    return lang.replace("_", "-").split("-")[0].lower()


def supported_voices(voices: list[Voice]) -> list[Voice]:
    """Voices in supported languages, or every voice if none qualify."""
    matching = [v for v in voices if v.language in LANGUAGE_NAMES]
    return matching or list(voices)


def group_by_language(voices: list[Voice]) -> dict[str, list[Voice]]:
    """Group voices by primary language, ordered by language priority."""
    groups: dict[str, list[Voice]] = {}
    for voice in voices:
        groups.setdefault(voice.language, []).append(voice)
    ordered = sorted(groups, key=lambda code: _PRIORITY.get(code, len(_PRIORITY)))
    return {code: groups[code] for code in ordered}


def choose_voice(voices: list[Voice], preferred_language: str = "") -> Voice | None:
    """Pick the default voice: system language first, then Indian English, English, Hindi."""
    if not voices:
        return None
    if preferred_language:
        for voice in voices:
            if voice.language == preferred_language.lower():
                return voice
    for tag in _FALLBACK_TAGS:
        for voice in voices:
            if voice.language_tag.lower().startswith(tag.lower()):
                return voice
    return voices[0]


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code or "Unknown")


class VoiceCatalogue:
    """Tracks the engine's voices and the current selection.

    The engine may announce its catalogue several times while it fills in;
    every announcement re-runs selection and keeps a selection that is
    still available.
    """

    def __init__(self, engine: SpeechEngine, preferred_language: str | None = None) -> None:
        self._engine = engine
        self._preferred = system_language() if preferred_language is None else preferred_language
        self._voices: list[Voice] = []
        self._selected: Voice | None = None
        self._subscribers: list[Callable[[VoiceCatalogue], None]] = []
        engine.on_voices_changed(self.refresh)

    @property
    def voices(self) -> list[Voice]:
        return list(self._voices)

    @property
    def selected(self) -> Voice | None:
        return self._selected

    @property
    def ready(self) -> bool:
        return bool(self._voices)

    def subscribe(self, callback: Callable[[VoiceCatalogue], None]) -> None:
        self._subscribers.append(callback)

    def refresh(self) -> None:
        available = self._engine.list_voices()
        if not available:
            logger.debug("Voice catalogue still empty")
            return

        voices = [v for group in group_by_language(supported_voices(available)).values() for v in group]
        self._voices = voices
        if self._selected is None or self._selected not in voices:
            self._selected = choose_voice(voices, self._preferred)
            logger.info(
                "Loaded %d voices, selected %s",
                len(voices),
                self._selected.name if self._selected else None,
            )
        for callback in list(self._subscribers):
            callback(self)

    def select(self, voice: Voice | None) -> None:
        self._selected = voice

    def find(self, name_or_id: str) -> Voice | None:
        """Find a voice by exact id, then by case-insensitive name substring."""
        for voice in self._voices:
            if voice.id == name_or_id:
                return voice
        needle = name_or_id.lower()
        for voice in self._voices:
            if needle in voice.name.lower():
                return voice
        return None

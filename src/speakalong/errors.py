"""Error taxonomy for the reader. None of these are fatal to the process."""

from __future__ import annotations


class SpeakAlongError(Exception):
    """Base class for every recoverable reader failure."""


class VoiceUnavailable(SpeakAlongError):
    """Playback was requested before a voice was selected."""

    def __init__(self, message: str = "Voice synthesis not ready.") -> None:
        super().__init__(message)


class EmptyInput(SpeakAlongError):
    """Playback was requested for blank text."""

    def __init__(self, message: str = "Please enter some text.") -> None:
        super().__init__(message)


class PlaybackEngineError(SpeakAlongError):
    """The speech engine reported a failure for the active session."""

    def __init__(self, cause: object = None) -> None:
        self.cause = cause
        super().__init__(f"Playback failed: {cause}" if cause else "Playback failed.")


class ClipboardPermissionDenied(SpeakAlongError):
    """The system clipboard could not be read or written."""


class FileReadError(SpeakAlongError):
    """A text file could not be imported."""


class TranslationServiceError(SpeakAlongError):
    """The translation request failed; the previous text is kept."""

"""Translate input text before synthesis."""

from __future__ import annotations

import logging

import requests

from speakalong.config import TRANSLATE_URL
from speakalong.errors import TranslationServiceError

logger = logging.getLogger(__name__)


def parse_translation(payload: object) -> str:
    """Join the translated fragments of a ``translate_a/single`` response.

    The first element is a list of ``[translated, original, ...]`` entries,
    one per source segment, in order.

    Raises:
        TranslationServiceError: If the payload does not have that shape or
            carries no translated text.
    """
    try:
        fragments = payload[0]
        if not isinstance(fragments, list):
            raise TypeError(f"expected a list of fragments, got {type(fragments).__name__}")
        translated = "".join(entry[0] for entry in fragments if entry and entry[0])
    except (TypeError, IndexError, KeyError) as exc:
        raise TranslationServiceError("Unexpected translation response") from exc
    if not translated:
        raise TranslationServiceError("Translation response contained no text")
    return translated


def translate(
    text: str,
    target_language: str,
    url: str = TRANSLATE_URL,
    timeout: float = 10.0,
) -> str:
    """Translate *text* into the language of *target_language* (``"hi-IN"`` or ``"hi"``).

    Raises:
        TranslationServiceError: On transport, HTTP or parse failure.
    """
    if not text.strip():
        return text
    target = target_language.split("-")[0].lower()
    params = {"client": "gtx", "sl": "auto", "tl": target, "dt": "t", "q": text}

    try:
        response = requests.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Translation to %s failed: %s", target, exc)
        raise TranslationServiceError("Translation service failed. Using current text.") from exc

    translated = parse_translation(payload)
    logger.info("Translated %d chars to %s", len(text), target)
    return translated

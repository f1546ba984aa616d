"""Split text into addressable words and sentences."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field

SENTENCE_TERMINATORS = frozenset(".!?")

_WORD_RE = re.compile(r"\S+")


@dataclass(frozen=True)
class Segment:
    """A word: a maximal non-whitespace run with its half-open span."""

    text: str
    start: int
    end: int
    sentence_index: int


@dataclass(frozen=True)
class SentenceSpan:
    """A sentence ending at its terminator (inclusive) or at end of text."""

    start: int
    end: int
    sentence_index: int


@dataclass(frozen=True)
class Segmentation:
    """Words and sentences of one source text, replaced as a whole."""

    text: str = ""
    words: tuple[Segment, ...] = ()
    sentences: tuple[SentenceSpan, ...] = ()
    _word_starts: tuple[int, ...] = field(default=(), repr=False, compare=False)

    def word_at(self, char_index: int) -> int:
        """Return the index of the word containing *char_index*, or -1."""
        if char_index < 0 or not self.words:
            return -1
        idx = bisect.bisect_right(self._word_starts, char_index) - 1
        if idx >= 0 and char_index < self.words[idx].end:
            return idx
        return -1

    def sentence_of(self, word_index: int) -> int:
        """Return the sentence index owning *word_index*, or -1."""
        if 0 <= word_index < len(self.words):
            return self.words[word_index].sentence_index
        return -1

    def word_start_at_or_before(self, char_index: int) -> int:
        """Start offset of the word containing or preceding *char_index*.

        Whitespace before the first word maps to 0.
        """
        idx = bisect.bisect_right(self._word_starts, char_index) - 1
        if idx < 0:
            return 0
        return self.words[idx].start


def split_sentences(text: str) -> list[SentenceSpan]:
    """Return sentence spans closed at each ``.``, ``!`` or ``?``."""
    sentences: list[SentenceSpan] = []
    start = 0
    for i, ch in enumerate(text):
        if ch in SENTENCE_TERMINATORS:
            sentences.append(SentenceSpan(start, i + 1, len(sentences)))
            start = i + 1

    # Trailing text without a terminator is one last sentence
    if start < len(text):
        sentences.append(SentenceSpan(start, len(text), len(sentences)))
    return sentences


def segment(text: str) -> Segmentation:
    """Segment *text* into ordered words and sentences.

    Each word is owned by the sentence whose range contains its first
    character. Sentence starts only grow, so a single forward pass over both
    sequences assigns every word in linear time.
    """
    sentences = split_sentences(text)
    words: list[Segment] = []
    cursor = 0

    for match in _WORD_RE.finditer(text):
        pos = match.start()
        while cursor < len(sentences) and sentences[cursor].end <= pos:
            cursor += 1
        if cursor < len(sentences) and sentences[cursor].start <= pos:
            sentence_index = sentences[cursor].sentence_index
        else:
            sentence_index = 0
        words.append(Segment(match.group(), pos, match.end(), sentence_index))

    return Segmentation(
        text=text,
        words=tuple(words),
        sentences=tuple(sentences),
        _word_starts=tuple(w.start for w in words),
    )

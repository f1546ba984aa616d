"""Load reading material from local files."""

from __future__ import annotations

import zipfile
from pathlib import Path

from pptx import Presentation
from pptx.exc import PackageNotFoundError

from speakalong.errors import FileReadError


def _close_sentence(line: str) -> str:
    return line if line[-1] in ".!?" else line + "."


def _is_title(shape) -> bool:
    return shape.is_placeholder and shape.placeholder_format.idx == 0


def slide_texts(path: Path) -> list[str]:
    """Return the readable text of each non-empty slide in a .pptx deck.

    The title is read first, and every line of every text frame closes a
    sentence so the segmenter sees bullets as separate sentences.
    """
    texts: list[str] = []
    for slide in Presentation(str(path)).slides:
        frames = [s for s in slide.shapes if s.has_text_frame and s.text_frame.text.strip()]
        frames.sort(key=lambda s: not _is_title(s))
        lines = [
            _close_sentence(line.strip())
            for shape in frames
            for line in shape.text_frame.text.splitlines()
            if line.strip()
        ]
        if lines:
            texts.append(" ".join(lines))
    return texts


def read_text_file(filepath: str | Path) -> str:
    """Read a file to speak: UTF-8 text, or the slide text of a .pptx deck.

    Slides are separated by blank lines.

    Raises:
        FileReadError: If the file is missing, unreadable or not valid UTF-8.
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileReadError(f"File not found: {path}")

    if path.suffix.lower() == ".pptx":
        try:
            return "\n\n".join(slide_texts(path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise FileReadError(f"Not a readable .pptx file: {path}") from exc

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileReadError(f"Could not read {path} as UTF-8 text") from exc

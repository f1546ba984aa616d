"""System clipboard access through the platform's command-line tools."""

from __future__ import annotations

import logging
import platform
import subprocess

from speakalong.errors import ClipboardPermissionDenied

logger = logging.getLogger(__name__)

_SYSTEM = platform.system()

# ---------------------------------------------------------------------------
# Per-platform commands, tried in order
# ---------------------------------------------------------------------------

_READ_COMMANDS = {
    "Darwin": [["pbpaste"]],
    "Windows": [["powershell", "-NoProfile", "-Command", "Get-Clipboard -Raw"]],
    "Linux": [["xclip", "-selection", "clipboard", "-o"], ["xsel", "-b", "-o"], ["wl-paste", "-n"]],
}

_WRITE_COMMANDS = {
    "Darwin": [["pbcopy"]],
    "Windows": [["clip"]],
    "Linux": [["xclip", "-selection", "clipboard", "-i"], ["xsel", "-b", "-i"], ["wl-copy"]],
}


def _run(command: list[str], stdin: str | None = None) -> str | None:
    """Run a clipboard command and return stdout, or None if it is unusable."""
    try:
        result = subprocess.run(
            command,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("%s unusable: %s", command[0], exc)
        return None
    if result.returncode != 0:
        logger.debug("%s exited with %d: %s", command[0], result.returncode, result.stderr.strip())
        return None
    return result.stdout


def read_text() -> str:
    """Return the clipboard contents.

    Raises:
        ClipboardPermissionDenied: If no clipboard tool could read it.
    """
    for command in _READ_COMMANDS.get(_SYSTEM, []):
        out = _run(command)
        if out is not None:
            return out
    raise ClipboardPermissionDenied(f"Clipboard could not be read on {_SYSTEM}")


def write_text(text: str) -> None:
    """Replace the clipboard contents with *text*.

    Raises:
        ClipboardPermissionDenied: If no clipboard tool accepted the text.
    """
    for command in _WRITE_COMMANDS.get(_SYSTEM, []):
        if _run(command, stdin=text) is not None:
            return
    raise ClipboardPermissionDenied(f"Clipboard could not be written on {_SYSTEM}")

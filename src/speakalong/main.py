"""CLI entry point for speakalong."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from speakalong.config import ReaderConfig
from speakalong.engine import Pyttsx3Engine
from speakalong.errors import SpeakAlongError
from speakalong.reader import Reader
from speakalong.state_machine import TERMINAL_STATES, PlaybackState
from speakalong.sync import SyncState


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speakalong",
        description="Read text aloud while highlighting the word being spoken.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- read: speak text with live highlighting ---
    read_p = sub.add_parser("read", help="Read text aloud with word highlighting")
    read_p.add_argument("file", nargs="?", help="UTF-8 text file or .pptx deck to read")
    read_p.add_argument("--text", help="Read this text instead of a file")
    read_p.add_argument("--paste", action="store_true", help="Read the clipboard contents")
    read_p.add_argument(
        "--rate",
        type=float,
        default=1.0,
        help="Speech rate multiplier, 0.5 to 2.0 (default: 1.0)",
    )
    read_p.add_argument("--voice", help="Voice id or part of its name")
    read_p.add_argument("--lang", help="Translate into this language first (e.g. hi-IN)")
    read_p.add_argument(
        "--cps",
        type=float,
        default=ReaderConfig.baseline_cps,
        help="Characters per second assumed when the voice reports no word events",
    )

    # --- voices: list available TTS voices ---
    sub.add_parser("voices", help="List available TTS voices grouped by language")

    # --- translate: print a translation ---
    tr_p = sub.add_parser("translate", help="Translate text and print it")
    tr_p.add_argument("text")
    tr_p.add_argument("--lang", required=True, help="Target language (e.g. ta-IN)")

    return parser


class TerminalHighlighter:
    """Redraws the active sentence on one line with the active word bracketed."""

    def __init__(self, reader: Reader, stream=sys.stdout) -> None:
        self._reader = reader
        self._stream = stream
        self._last_word = -1

    def __call__(self, state: SyncState) -> None:
        if state.active_word_index == self._last_word:
            return
        self._last_word = state.active_word_index
        if state.active_word_index < 0:
            return

        seg = self._reader.segmentation
        words = [w for w in seg.words if w.sentence_index == state.active_sentence_index]
        line = " ".join(
            f"[{w.text}]" if w is seg.words[state.active_word_index] else w.text for w in words
        )
        self._stream.write("\r\x1b[K" + line[-200:])
        self._stream.flush()


async def _read(args: argparse.Namespace) -> int:
    loop = asyncio.get_running_loop()
    config = ReaderConfig(baseline_cps=args.cps)
    reader = Reader(Pyttsx3Engine(loop, config), loop, config)
    reader.on_notify(lambda err: print(f"\n{err}", file=sys.stderr))

    reader.catalogue.refresh()
    if args.voice:
        voice = reader.catalogue.find(args.voice)
        if voice is None:
            print(f"No voice matching {args.voice!r}", file=sys.stderr)
            return 1
        reader.select_voice(voice, translate=False)

    if args.paste:
        loaded = reader.paste()
    elif args.text is not None:
        reader.set_text(args.text)
        loaded = True
    elif args.file:
        loaded = reader.import_file(args.file)
    else:
        print("Nothing to read: pass a file, --text or --paste", file=sys.stderr)
        return 1
    if not loaded:
        return 1

    if args.lang:
        reader.translate_to(args.lang)

    done = asyncio.Event()
    outcome: list[PlaybackState] = []

    def _on_state(state: PlaybackState) -> None:
        if state in TERMINAL_STATES:
            outcome.append(state)
            done.set()

    reader.controller.subscribe(TerminalHighlighter(reader))
    reader.playback.subscribe(_on_state)
    reader.set_rate(args.rate)

    try:
        loop.add_signal_handler(signal.SIGINT, reader.stop)
        loop.add_signal_handler(signal.SIGTERM, reader.stop)
    except NotImplementedError:
        # Windows event loops have no signal handlers
        signal.signal(signal.SIGINT, lambda sig, frame: loop.call_soon_threadsafe(reader.stop))

    if reader.play() is None:
        return 1
    await done.wait()
    print()
    return 1 if PlaybackState.ERROR in outcome else 0


def _cmd_read(args: argparse.Namespace) -> int:
    return asyncio.run(_read(args))


async def _voices() -> int:
    from speakalong.voices import group_by_language, language_name

    loop = asyncio.get_running_loop()
    reader = Reader(Pyttsx3Engine(loop), loop)
    reader.catalogue.refresh()
    voices = reader.catalogue.voices
    if not voices:
        print("No voices found.")
        return 0
    selected = reader.catalogue.selected
    for code, group in group_by_language(voices).items():
        print(language_name(code))
        for v in group:
            marker = "*" if v == selected else " "
            print(f" {marker} {v.name}  ({v.id}) {v.language_tag}")
    return 0


def _cmd_voices(_args: argparse.Namespace) -> int:
    return asyncio.run(_voices())


def _cmd_translate(args: argparse.Namespace) -> int:
    from speakalong.translator import translate

    try:
        print(translate(args.text, args.lang))
    except SpeakAlongError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "read": _cmd_read,
        "voices": _cmd_voices,
        "translate": _cmd_translate,
    }
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()

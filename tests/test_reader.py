"""Tests for the Reader composition root."""

from unittest.mock import MagicMock, patch

import pytest
from conftest import ENGLISH, HINDI, FakeEngine

from speakalong.errors import (
    ClipboardPermissionDenied,
    EmptyInput,
    FileReadError,
    TranslationServiceError,
    VoiceUnavailable,
)
from speakalong.reader import Reader
from speakalong.state_machine import PlaybackState
from speakalong.sync import SyncState


@pytest.fixture
def reader(engine, loop, config) -> Reader:
    r = Reader(engine, loop, config, preferred_language="")
    loop.advance()
    r.catalogue.refresh()
    return r


@pytest.fixture
def notices(reader) -> list:
    received: list = []
    reader.on_notify(received.append)
    return received


class TestPlayback:
    def test_play_reads_current_text(self, reader, engine) -> None:
        reader.set_text("Read me now.")
        reader.set_rate(1.25)
        session = reader.play()
        assert session is not None
        assert engine.spoken[-1].text == "Read me now."
        assert engine.spoken[-1].rate == 1.25
        assert engine.spoken[-1].voice_id == ENGLISH.id

    def test_active_word(self, reader, engine) -> None:
        reader.set_text("Read me now.")
        reader.play()
        engine.started()
        engine.boundary(5)
        assert reader.active_word().text == "me"

    def test_no_voice_reported(self, loop, config) -> None:
        reader = Reader(FakeEngine(), loop, config, preferred_language="")
        notices = []
        reader.on_notify(notices.append)
        reader.set_text("Something to say.")
        assert reader.play() is None
        assert isinstance(notices[0], VoiceUnavailable)

    def test_empty_text_reported(self, reader, notices, engine) -> None:
        assert reader.play() is None
        assert isinstance(notices[0], EmptyInput)
        assert engine.calls == []

    def test_engine_error_reported(self, reader, notices, engine) -> None:
        reader.set_text("Read me now.")
        reader.play()
        engine.started()
        engine.failed("network voice unavailable")
        assert notices[0].cause == "network voice unavailable"
        assert reader.controller.state == SyncState.IDLE

    def test_new_text_stops_playback(self, reader, engine) -> None:
        reader.set_text("Read me now.")
        reader.play()
        engine.started()
        engine.boundary(5)
        reader.set_text("Different words.")
        assert reader.playback.state is PlaybackState.IDLE
        assert reader.controller.state == SyncState.IDLE
        assert reader.segmentation.words[0].text == "Different"


class TestCollaborators:
    @patch("speakalong.reader.translator.translate", return_value="मुझे पढ़ो।")
    def test_select_voice_translates(self, mock_translate, reader) -> None:
        reader.set_text("Read me.")
        reader.select_voice(HINDI)
        assert reader.catalogue.selected == HINDI
        assert reader.text == "मुझे पढ़ो।"
        assert mock_translate.call_args.args == ("Read me.", "hi-IN")

    @patch("speakalong.reader.translator.translate")
    def test_select_voice_without_text(self, mock_translate, reader) -> None:
        reader.select_voice(HINDI)
        mock_translate.assert_not_called()

    @patch("speakalong.reader.translator.translate")
    def test_translation_failure_keeps_text(self, mock_translate, reader, notices, engine) -> None:
        mock_translate.side_effect = TranslationServiceError("down")
        reader.set_text("Keep me.")
        reader.play()
        engine.started()

        assert reader.translate_to("ta-IN") is False
        assert reader.text == "Keep me."
        assert isinstance(notices[0], TranslationServiceError)
        assert reader.playback.state is PlaybackState.SPEAKING

    @patch("speakalong.translator.requests.get")
    def test_empty_translation_keeps_text(self, mock_get, reader, notices) -> None:
        mock_get.return_value.json.return_value = [[], None, "en"]
        reader.set_text("Keep me.")

        assert reader.translate_to("hi-IN") is False
        assert reader.text == "Keep me."
        assert isinstance(notices[0], TranslationServiceError)

    @patch("speakalong.reader.clipboard.read_text", return_value="From the clipboard.")
    def test_paste(self, _mock, reader) -> None:
        assert reader.paste() is True
        assert reader.text == "From the clipboard."

    @patch("speakalong.reader.clipboard.read_text")
    def test_paste_denied(self, mock_read, reader, notices, engine) -> None:
        mock_read.side_effect = ClipboardPermissionDenied("no access")
        reader.set_text("Playing.")
        reader.play()
        engine.started()
        assert reader.paste() is False
        assert reader.text == "Playing."
        assert reader.playback.state is PlaybackState.SPEAKING
        assert isinstance(notices[0], ClipboardPermissionDenied)

    @patch("speakalong.reader.clipboard.write_text")
    def test_copy(self, mock_write, reader) -> None:
        reader.set_text("Copy me.")
        assert reader.copy() is True
        mock_write.assert_called_once_with("Copy me.")

    def test_import_file(self, reader, tmp_path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("Imported text.", encoding="utf-8")
        assert reader.import_file(path) is True
        assert reader.text == "Imported text."

    def test_import_missing_file(self, reader, notices) -> None:
        reader.set_text("Old.")
        assert reader.import_file("/nonexistent/notes.txt") is False
        assert reader.text == "Old."
        assert isinstance(notices[0], FileReadError)

    def test_clear(self, reader) -> None:
        reader.set_text("Something.")
        reader.clear()
        assert reader.text == ""
        assert reader.segmentation.words == ()

    def test_notify_callback_receives_errors(self, reader) -> None:
        callback = MagicMock()
        reader.on_notify(callback)
        reader.play()
        callback.assert_called_once()

"""Tests for the translation client."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from speakalong.errors import TranslationServiceError
from speakalong.translator import parse_translation, translate

PAYLOAD = [
    [
        ["नमस्ते दुनिया। ", "Hello world. ", None, None, 10],
        ["अलविदा!", "Bye!", None, None, 10],
    ],
    None,
    "en",
]


def _response(payload=PAYLOAD, status_error=None) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    if status_error:
        response.raise_for_status.side_effect = status_error
    return response


class TestParseTranslation:
    def test_joins_fragments_in_order(self) -> None:
        assert parse_translation(PAYLOAD) == "नमस्ते दुनिया। अलविदा!"

    @pytest.mark.parametrize("payload", [None, [], {"error": 1}, [None], ["text"], [[[5, "x"]]]])
    def test_bad_shape(self, payload) -> None:
        with pytest.raises(TranslationServiceError):
            parse_translation(payload)

    @pytest.mark.parametrize("payload", [[[]], [[], None, "en"], [[[None, "Hello"]]]])
    def test_no_translated_text(self, payload) -> None:
        with pytest.raises(TranslationServiceError, match="no text"):
            parse_translation(payload)


@patch("speakalong.translator.requests.get")
class TestTranslate:
    def test_request_parameters(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response()
        assert translate("Hello world. Bye!", "hi-IN") == "नमस्ते दुनिया। अलविदा!"
        params = mock_get.call_args.kwargs["params"]
        assert params == {"client": "gtx", "sl": "auto", "tl": "hi", "dt": "t", "q": "Hello world. Bye!"}
        assert mock_get.call_args.kwargs["timeout"] == 10.0

    def test_blank_text_not_sent(self, mock_get: MagicMock) -> None:
        assert translate("   ", "ta-IN") == "   "
        mock_get.assert_not_called()

    def test_transport_failure(self, mock_get: MagicMock) -> None:
        mock_get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(TranslationServiceError) as excinfo:
            translate("Hello", "gu-IN")
        assert isinstance(excinfo.value.__cause__, requests.ConnectionError)

    def test_http_failure(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response(status_error=requests.HTTPError("429"))
        with pytest.raises(TranslationServiceError):
            translate("Hello", "mr-IN")

    def test_invalid_json(self, mock_get: MagicMock) -> None:
        response = _response()
        response.json.side_effect = ValueError("not json")
        mock_get.return_value = response
        with pytest.raises(TranslationServiceError):
            translate("Hello", "te-IN")

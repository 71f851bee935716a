"""Tests for live key verification."""

import pytest
from unittest.mock import MagicMock, patch
from requests.exceptions import ConnectionError, Timeout

from openleak.config import SetupSettings
from openleak.verify import verify_key


@pytest.fixture
def settings(tmp_path):
    return SetupSettings(config_path=tmp_path / "openclaw.json", base_url="http://proxy.local")


@pytest.fixture
def client():
    return MagicMock()


def make_response(status_code, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text
    return response


def test_verify_message_type(settings, client):
    client.send_message.return_value = make_response(200, {"type": "message", "content": []})

    assert verify_key("sk-cl-abc", settings, client) is True
    client.send_message.assert_called_once_with("sk-cl-abc", model="claude-sonnet-4-5")


def test_verify_content_only(settings, client):
    client.send_message.return_value = make_response(200, {"content": [{"type": "text", "text": "pong"}]})

    assert verify_key("sk-cl-abc", settings, client) is True


@pytest.mark.parametrize("response", [
    make_response(401, {"error": "invalid key"}, text='{"error": "invalid key"}'),
    make_response(200, {"type": "error", "content": []}),
    make_response(200, ValueError("not json"), text="<html></html>"),
    make_response(200, ["message"]),
])
def test_verify_unexpected_response(settings, client, response, caplog):
    """Test that bad statuses and bodies give False plus a warning."""
    client.send_message.return_value = response

    with caplog.at_level("WARNING", logger="openleak"):
        assert verify_key("sk-cl-abc", settings, client) is False

    assert "Unexpected verification response" in caplog.text


@pytest.mark.parametrize("error", [ConnectionError("refused"), Timeout("slow")])
def test_verify_network_error(settings, client, error, caplog):
    """Test that transport errors are swallowed into a warning."""
    client.send_message.side_effect = error

    with caplog.at_level("WARNING", logger="openleak"):
        assert verify_key("sk-cl-abc", settings, client) is False

    assert "Verification request failed" in caplog.text


def test_verify_builds_client_from_settings(settings):
    with patch('openleak.client.requests.post') as mock_post:
        mock_post.return_value = make_response(200, {"type": "message"})

        assert verify_key("sk-cl-abc", settings) is True

    assert mock_post.call_args[0][0] == "http://proxy.local/v1/messages"


def test_verify_unencodable_key_header(settings, caplog):
    """Test that a key http.client cannot put in a header is reported, not raised."""
    error = UnicodeEncodeError("latin-1", "sk-cl-abc’", 9, 10, "ordinal not in range(256)")

    with patch('openleak.client.requests.post', side_effect=error):
        with caplog.at_level("WARNING", logger="openleak"):
            assert verify_key("sk-cl-abc’", settings) is False

    assert "Verification request failed" in caplog.text

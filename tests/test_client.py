"""Tests for the OpenLeak HTTP client."""

import pytest
from unittest.mock import MagicMock, patch
from requests.exceptions import ConnectionError

from openleak.client import OpenLeakClient


@pytest.fixture
def mock_post():
    with patch('openleak.client.requests.post') as mock:
        mock.return_value = MagicMock(status_code=200)
        yield mock


def test_init_strips_trailing_slash():
    client = OpenLeakClient("https://openleak.fun/")
    assert client.base_url == "https://openleak.fun"
    assert client.timeout is None


def test_generate_key_posts_without_body(mock_post):
    """Test that key issuance is a bare POST to /api/generate-key."""
    client = OpenLeakClient("https://openleak.fun", timeout=5)

    response = client.generate_key()

    assert response is mock_post.return_value
    args, kwargs = mock_post.call_args
    assert args[0] == "https://openleak.fun/api/generate-key"
    assert "json" not in kwargs
    assert "data" not in kwargs
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["User-Agent"].startswith("openleak-setup/")


def test_send_message_headers_and_body(mock_post):
    """Test that the message call carries the key and version headers."""
    client = OpenLeakClient("https://openleak.fun")

    client.send_message("sk-cl-abc")

    args, kwargs = mock_post.call_args
    assert args[0] == "https://openleak.fun/v1/messages"
    assert kwargs["headers"]["x-api-key"] == "sk-cl-abc"
    assert kwargs["headers"]["anthropic-version"] == "2023-06-01"
    assert kwargs["json"] == {
        "model": "claude-sonnet-4-5",
        "max_tokens": 8,
        "messages": [{"role": "user", "content": "ping"}],
    }
    assert kwargs["timeout"] is None


def test_send_message_does_not_leak_key_into_shared_headers(mock_post):
    client = OpenLeakClient("https://openleak.fun")

    client.send_message("sk-cl-abc")

    assert "x-api-key" not in client.headers


def test_transport_errors_propagate(mock_post):
    mock_post.side_effect = ConnectionError("refused")
    client = OpenLeakClient("https://openleak.fun")

    with pytest.raises(ConnectionError):
        client.generate_key()

"""
Tests for telegram_api.py with requests mocked.
"""
from unittest import mock

import pytest
import requests

import config
import telegram_api


@pytest.fixture(autouse=True)
def token(monkeypatch):
    monkeypatch.setattr(config, 'TELEGRAM_BOT_TOKEN', 'abc')


def _response(status=200, payload=None):
    response = mock.Mock()
    response.status_code = status
    response.text = "error" if status != 200 else "ok"
    response.json.return_value = payload or {"ok": status == 200}
    return response


def test_send_message():
    with mock.patch('requests.post', return_value=_response()) as post:
        assert telegram_api.send_message(5, "oi") is True

    post.assert_called_once_with(
        "https://api.telegram.org/botabc/sendMessage",
        json={'chat_id': 5, 'text': "oi"},
        timeout=config.TELEGRAM_TIMEOUT_SECONDS,
    )


def test_send_message_rejected():
    with mock.patch('requests.post', return_value=_response(400)):
        assert telegram_api.send_message(5, "oi") is False


def test_send_message_retries_once_on_connection_error():
    with mock.patch('requests.post', side_effect=[requests.ConnectionError("reset"), _response()]) as post:
        assert telegram_api.send_message(5, "oi") is True
    assert post.call_count == 2


def test_send_message_gives_up_after_retry():
    with mock.patch('requests.post', side_effect=requests.Timeout("slow")) as post:
        assert telegram_api.send_message(5, "oi") is False
    assert post.call_count == 2


def test_set_webhook():
    with mock.patch('requests.post', return_value=_response(payload={"ok": True, "result": True})) as post:
        assert telegram_api.set_webhook("https://x/api/telegram/webhook") == {"ok": True, "result": True}
    assert post.call_args.kwargs["json"] == {'url': "https://x/api/telegram/webhook"}

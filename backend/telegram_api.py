"""
Telegram Bot API calls (sendMessage, setWebhook).
"""
from typing import Optional
import requests

import config


def _api_url(method: str) -> str:
    return f"{config.TELEGRAM_API}{config.TELEGRAM_BOT_TOKEN}/{method}"


def _post(method: str, payload: dict) -> requests.Response:
    """POST with a timeout; connection errors and timeouts get one more try."""
    try:
        return requests.post(_api_url(method), json=payload, timeout=config.TELEGRAM_TIMEOUT_SECONDS)
    except (requests.ConnectionError, requests.Timeout) as e:
        print(f"[telegram] {method} failed ({e}), retrying once")
        return requests.post(_api_url(method), json=payload, timeout=config.TELEGRAM_TIMEOUT_SECONDS)


def send_message(chat_id: int, text: str) -> bool:
    """
    Deliver a reply. Fire-and-forget: errors are logged, never raised.
    Returns whether Telegram accepted the message.
    """
    try:
        response = _post('sendMessage', {'chat_id': chat_id, 'text': text})
    except Exception as e:
        print(f"[telegram] Error sending message to chat {chat_id}: {e}")
        return False

    if response.status_code != 200:
        print(f"[telegram] sendMessage failed for chat {chat_id}: {response.text}")
        return False
    return True


def set_webhook(webhook_url: str) -> Optional[dict]:
    """Register the webhook URL with Telegram and return its JSON answer."""
    response = _post('setWebhook', {'url': webhook_url})
    if response.status_code != 200:
        print(f"[telegram] setWebhook failed: {response.text}")
    return response.json()

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'backend'))

import config
from state import ChatState, InMemoryHistoryStore, InMemorySavedLedger


@pytest.fixture(autouse=True)
def sao_paulo_timezone(monkeypatch):
    """Pin the bot timezone so local-day assertions don't depend on the environment."""
    monkeypatch.setattr(config, 'BOT_TIMEZONE', 'America/Sao_Paulo')


@pytest.fixture
def chat_state():
    return ChatState(history=InMemoryHistoryStore(), ledger=InMemorySavedLedger())

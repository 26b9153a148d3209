"""
Per-chat conversation state: rolling history and the ledger of saved meetings.

Two backends:
- memory: process-local dicts (single instance; lost on restart)
- firestore: one document per chat in telegram_chats/{chat_id}

Locks are always process-local. With several instances behind the webhook,
two instances can still interleave updates for the same chat.
"""
import threading
from collections import OrderedDict, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List

import config
import database
from models import ChatRole, ChatTurn


def saved_meeting_key(subject: str, normalized_date: str) -> str:
    return f"{subject}|{normalized_date}"


def evict_oldest_turns(turns: Deque[ChatTurn], window: int) -> None:
    """Drop turns from the front until at most `window` remain."""
    while len(turns) > window:
        turns.popleft()


def evict_oldest_keys(keys: 'OrderedDict[str, None]', cap: int) -> None:
    """Drop the oldest-inserted keys until at most `cap` remain."""
    while len(keys) > cap:
        keys.popitem(last=False)


class InMemoryHistoryStore:
    def __init__(self, window: int = config.HISTORY_WINDOW):
        self.window = window
        self._turns: Dict[int, Deque[ChatTurn]] = {}

    def get(self, chat_id: int) -> List[ChatTurn]:
        return list(self._turns.get(chat_id, ()))

    def append(self, chat_id: int, user_text: str, model_text: str) -> None:
        turns = self._turns.setdefault(chat_id, deque())
        turns.append(ChatTurn(role=ChatRole.user, text=user_text))
        turns.append(ChatTurn(role=ChatRole.model, text=model_text))
        evict_oldest_turns(turns, self.window)


class InMemorySavedLedger:
    def __init__(self, cap: int = config.SAVED_KEYS_CAP):
        self.cap = cap
        self._keys: Dict[int, 'OrderedDict[str, None]'] = {}

    def has(self, chat_id: int, key: str) -> bool:
        return key in self._keys.get(chat_id, {})

    def mark(self, chat_id: int, key: str) -> None:
        keys = self._keys.setdefault(chat_id, OrderedDict())
        keys.pop(key, None)
        keys[key] = None
        evict_oldest_keys(keys, self.cap)

    def keys(self, chat_id: int) -> List[str]:
        return list(self._keys.get(chat_id, {}))


class FirestoreHistoryStore:
    """History kept in telegram_chats/{chat_id}.history so all instances see it."""

    def __init__(self, window: int = config.HISTORY_WINDOW):
        self.window = window

    def get(self, chat_id: int) -> List[ChatTurn]:
        try:
            raw = database.get_chat_state(chat_id).get('history', [])
            return [ChatTurn(**turn) for turn in raw]
        except Exception as e:
            print(f"[state] Error loading history for chat {chat_id}: {e}")
            return []

    def append(self, chat_id: int, user_text: str, model_text: str) -> None:
        turns = deque(self.get(chat_id))
        turns.append(ChatTurn(role=ChatRole.user, text=user_text))
        turns.append(ChatTurn(role=ChatRole.model, text=model_text))
        evict_oldest_turns(turns, self.window)
        database.set_chat_history(chat_id, [turn.model_dump(mode='json') for turn in turns])


class FirestoreSavedLedger:
    """Saved keys kept in telegram_chats/{chat_id}.saved_keys, oldest first."""

    def __init__(self, cap: int = config.SAVED_KEYS_CAP):
        self.cap = cap

    def keys(self, chat_id: int) -> List[str]:
        return list(database.get_chat_state(chat_id).get('saved_keys', []))

    def has(self, chat_id: int, key: str) -> bool:
        return key in self.keys(chat_id)

    def mark(self, chat_id: int, key: str) -> None:
        keys = OrderedDict((k, None) for k in self.keys(chat_id))
        keys.pop(key, None)
        keys[key] = None
        evict_oldest_keys(keys, self.cap)
        database.set_saved_keys(chat_id, list(keys))


@dataclass
class ChatState:
    """
    History store and ledger plus the per-chat locks that guard them.

    One lock is created per chat id on first use and kept for the life of the
    process; locks are never pruned, so memory grows with the number of
    distinct chats seen (a few hundred bytes each).
    """
    history: object
    ledger: object
    _locks: Dict[int, threading.Lock] = field(default_factory=dict)
    _locks_guard: threading.Lock = field(default_factory=threading.Lock)

    @contextmanager
    def chat_lock(self, chat_id: int) -> Iterator[None]:
        """Serialize exchanges for the same chat within this process."""
        with self._locks_guard:
            lock = self._locks.setdefault(chat_id, threading.Lock())
        with lock:
            yield


def create_chat_state(backend: str = None) -> ChatState:
    backend = backend or config.CHAT_STATE_BACKEND
    if backend == 'firestore':
        print("[state] Using Firestore chat state")
        return ChatState(history=FirestoreHistoryStore(), ledger=FirestoreSavedLedger())
    if backend != 'memory':
        print(f"[state] Unknown CHAT_STATE_BACKEND '{backend}', using memory")
    return ChatState(history=InMemoryHistoryStore(), ledger=InMemorySavedLedger())

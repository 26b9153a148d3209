"""
Database operations for Firestore.

Collections:
- meetings/{meeting_id}: subject, date, full_text, created_at, updated_at
- meetings/{meeting_id}/items/{item_id}: content, order, created_at
- telegram_chats/{chat_id}: history, saved_keys (only with CHAT_STATE_BACKEND=firestore)
"""
from datetime import datetime, timedelta
from typing import List, Optional
from firebase_admin import firestore

import dates
from models import Meeting, MeetingItem

MEETINGS = 'meetings'
ITEMS = 'items'
CHATS = 'telegram_chats'


def get_firestore_client():
    """Get Firestore client."""
    return firestore.client()


def _meetings_ref():
    return get_firestore_client().collection(MEETINGS)


def _items_ref(meeting_id: str):
    return _meetings_ref().document(meeting_id).collection(ITEMS)


def _meeting_from_doc(doc) -> Meeting:
    data = doc.to_dict() or {}
    return Meeting(
        id=doc.id,
        subject=data.get('subject', ''),
        date=data.get('date'),
        full_text=data.get('full_text'),
        created_at=data.get('created_at'),
        updated_at=data.get('updated_at'),
    )


def create_meeting(subject: str, date, full_text: Optional[str] = None) -> str:
    """
    Create a meeting and return its id.
    Path: meetings/{auto_id}
    """
    doc_ref = _meetings_ref().document()  # Auto-generate ID

    meeting_data = {
        'subject': subject,
        'date': dates.to_storage_date(date),
        'created_at': firestore.SERVER_TIMESTAMP,
        'updated_at': firestore.SERVER_TIMESTAMP,
    }
    if full_text:
        meeting_data['full_text'] = full_text

    doc_ref.set(meeting_data)
    print(f"[database] Saved meeting {doc_ref.id} ({subject})")
    return doc_ref.id


def get_meeting(meeting_id: str) -> Optional[Meeting]:
    doc = _meetings_ref().document(meeting_id).get()
    if doc.exists:
        return _meeting_from_doc(doc)
    return None


def list_meetings() -> List[Meeting]:
    """All meetings, most recent date first."""
    query = _meetings_ref().order_by('date', direction=firestore.Query.DESCENDING)
    return [_meeting_from_doc(doc) for doc in query.stream()]


def list_meetings_recent(days: int) -> List[Meeting]:
    """Meetings from the last N days (counted from local midnight)."""
    cutoff_day = dates.today() - timedelta(days=days)
    cutoff = datetime.combine(cutoff_day, datetime.min.time(), tzinfo=dates.local_tz())
    return [m for m in list_meetings() if dates.to_local_datetime(m.date) >= cutoff]


def list_meetings_near_date(center, window_days: int = 1) -> List[Meeting]:
    """
    Meetings whose local calendar day is within +/- window_days of `center`.
    Keeps the store's ordering (date descending).
    """
    return [m for m in list_meetings() if dates.within_day_window(m.date, center, window_days)]


def update_meeting(
    meeting_id: str,
    subject: Optional[str] = None,
    date=None,
    full_text: Optional[str] = None,
) -> None:
    payload = {'updated_at': firestore.SERVER_TIMESTAMP}
    if subject is not None:
        payload['subject'] = subject
    if date is not None:
        payload['date'] = dates.to_storage_date(date)
    if full_text is not None:
        payload['full_text'] = full_text

    _meetings_ref().document(meeting_id).update(payload)


def delete_meeting(meeting_id: str) -> None:
    """Delete a meeting. Items are not deleted; remove them first if needed."""
    _meetings_ref().document(meeting_id).delete()


def add_meeting_item(meeting_id: str, content: str, order: int) -> str:
    """
    Add an item to a meeting.
    Path: meetings/{meeting_id}/items/{auto_id}
    """
    doc_ref = _items_ref(meeting_id).document()
    doc_ref.set({
        'content': content,
        'order': order,
        'created_at': firestore.SERVER_TIMESTAMP,
    })
    return doc_ref.id


def list_meeting_items(meeting_id: str) -> List[MeetingItem]:
    query = _items_ref(meeting_id).order_by('order', direction=firestore.Query.ASCENDING)

    items = []
    for doc in query.stream():
        data = doc.to_dict() or {}
        items.append(MeetingItem(
            id=doc.id,
            content=data.get('content', ''),
            order=data.get('order', 0),
            created_at=data.get('created_at'),
        ))
    return items


def update_meeting_item(meeting_id: str, item_id: str, content: Optional[str] = None,
                        order: Optional[int] = None) -> None:
    payload = {}
    if content is not None:
        payload['content'] = content
    if order is not None:
        payload['order'] = order
    if payload:
        _items_ref(meeting_id).document(item_id).update(payload)


def delete_meeting_item(meeting_id: str, item_id: str) -> None:
    _items_ref(meeting_id).document(item_id).delete()


def get_chat_state(chat_id: int) -> dict:
    """Chat document (history + saved_keys); empty dict if the chat is new."""
    doc = get_firestore_client().collection(CHATS).document(str(chat_id)).get()
    if doc.exists:
        return doc.to_dict() or {}
    return {}


def set_chat_history(chat_id: int, history: List[dict]) -> None:
    doc_ref = get_firestore_client().collection(CHATS).document(str(chat_id))
    doc_ref.set({'history': history, 'updated_at': firestore.SERVER_TIMESTAMP}, merge=True)


def set_saved_keys(chat_id: int, saved_keys: List[str]) -> None:
    doc_ref = get_firestore_client().collection(CHATS).document(str(chat_id))
    doc_ref.set({'saved_keys': saved_keys, 'updated_at': firestore.SERVER_TIMESTAMP}, merge=True)

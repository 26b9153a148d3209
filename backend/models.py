"""
Models for the meeting notes bot.
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    user = 'user'
    model = 'model'


class ChatTurn(BaseModel):
    """One message in a chat, tagged with who said it."""
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    text: str


class ExtractedMeeting(BaseModel):
    """Result of one extraction pass over the chat history."""
    has_complete_meeting: bool = False
    subject: Optional[str] = Field(default=None, description="Subject/name of the meeting")
    date: Optional[str] = Field(default=None, description="ISO datetime or YYYY-MM-DD")
    full_text: Optional[str] = Field(default=None, description="Everything said about the meeting, unabridged")
    items: List[str] = Field(default=[], description="Discussion points, decisions and notes")

    @property
    def is_complete(self) -> bool:
        """Subject, date and at least one item must all be present."""
        if not self.has_complete_meeting:
            return False
        if not (self.subject or '').strip() or not (self.date or '').strip():
            return False
        return any(item.strip() for item in self.items)


class MeetingItem(BaseModel):
    id: Optional[str] = None
    content: str
    order: int
    created_at: Optional[datetime] = None


class Meeting(BaseModel):
    id: Optional[str] = None
    subject: str = Field(description='Subject/category of the meeting (e.g. "Sprint Planning", "1:1")')
    # Firestore timestamp, datetime or ISO string
    date: Any = None
    full_text: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Telegram webhook payload: only the fields the bot reads

class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    chat: TelegramChat
    text: Optional[str] = None


class TelegramUpdate(BaseModel):
    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None


class SimulatedMessageRequest(BaseModel):
    text: str = ''


class SimulatedMessageResponse(BaseModel):
    ok: bool
    reply: str

"""
Loose matching of a user message against stored meeting subjects.
"""
import re
import unicodedata
from typing import Iterable, Optional

from models import Meeting

_WHITESPACE = re.compile(r'\s+')


def normalize(text: str) -> str:
    """Lowercase, trim, strip accents and collapse whitespace ("  Reunião  de RH" -> "reuniao de rh")."""
    decomposed = unicodedata.normalize('NFD', (text or '').lower().strip())
    stripped = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return _WHITESPACE.sub(' ', stripped)


def find_match(message: str, candidates: Iterable[Meeting]) -> Optional[Meeting]:
    """
    Return the first candidate whose subject equals, is contained in, or
    contains the message. Candidates are checked in the order given (the
    store's listing order); there is no ranking between several matches.
    """
    needle = normalize(message)
    if not needle:
        return None

    for meeting in candidates:
        subject = normalize(meeting.subject)
        if not subject:
            continue
        if subject == needle or subject in needle or needle in subject:
            return meeting

    return None

#!/usr/bin/env python3
"""
Quick Firestore query script for the meeting notes bot.

Usage:
    python scripts/meetings_query.py [command]

Commands:
    meetings [days]  - List meetings (optionally only the last N days)
    meeting <id>     - Show a meeting with its items
    stats            - Count meetings per subject and date storage type
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import firebase_admin
from firebase_admin import credentials

import config
import database
import dates


def init_firebase():
    """Initialize Firebase connection."""
    creds_path = config.FIREBASE_CREDENTIALS_PATH
    if not creds_path or not os.path.exists(creds_path):
        raise FileNotFoundError("Set GOOGLE_APPLICATION_CREDENTIALS to a service account JSON file")

    cred = credentials.Certificate(creds_path)
    try:
        firebase_admin.initialize_app(cred)
    except ValueError:
        pass  # Already initialized


def list_meetings(days=None):
    """List meetings, most recent first."""
    if days is None:
        print("\n=== Meetings ===\n")
        meetings = database.list_meetings()
    else:
        print(f"\n=== Meetings from the last {days} days ===\n")
        meetings = database.list_meetings_recent(days)

    for i, meeting in enumerate(meetings, 1):
        preview = (meeting.full_text or '').replace('\n', ' ')[:60]
        print(f"[{i}] {meeting.id}")
        print(f"    Subject: {meeting.subject}")
        print(f"    Date: {dates.format_meeting_date(meeting.date)}")
        print(f"    Text: {preview or '-'}")
        print()


def show_meeting(meeting_id):
    """Show a meeting and its items."""
    print(f"\n=== Meeting {meeting_id} ===\n")

    meeting = database.get_meeting(meeting_id)
    if meeting is None:
        print("Meeting not found!")
        return

    print(f"ID: {meeting.id}")
    print(f"Subject: {meeting.subject}")
    print(f"Date: {dates.format_meeting_date(meeting.date)}")
    print(f"Created: {meeting.created_at}")
    print(f"Updated: {meeting.updated_at}")
    print()
    print(f"Full text:\n{meeting.full_text or '(empty)'}")
    print()

    items = database.list_meeting_items(meeting_id)
    print(f"Items ({len(items)}):")
    for item in items:
        print(f"  [{item.order}] {item.content}")


def show_stats():
    """Show meeting stats."""
    print("\n=== Meeting stats ===\n")

    meetings = database.list_meetings()
    subjects = {}
    date_types = {'string': 0, 'timestamp': 0}

    for meeting in meetings:
        subjects[meeting.subject] = subjects.get(meeting.subject, 0) + 1
        if isinstance(meeting.date, str):
            date_types['string'] += 1
        else:
            date_types['timestamp'] += 1

    print(f"Total meetings: {len(meetings)}")
    print()
    print("By subject:")
    for subject, count in sorted(subjects.items(), key=lambda x: -x[1]):
        print(f"  {subject}: {count}")
    print()
    print("Date types:")
    print(f"  STRING: {date_types['string']}")
    print(f"  TIMESTAMP: {date_types['timestamp']}")


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return

    init_firebase()
    command = sys.argv[1]

    if command == 'meetings':
        days = int(sys.argv[2]) if len(sys.argv) > 2 else None
        list_meetings(days)
    elif command == 'meeting':
        if len(sys.argv) < 3:
            print("Usage: python meetings_query.py meeting <id>")
            return
        show_meeting(sys.argv[2])
    elif command == 'stats':
        show_stats()
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == '__main__':
    main()

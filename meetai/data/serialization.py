"""
MeetAI Assistant — Aggregate (de)serialization.

Converts UserAggregate objects to the JSON blob layout kept in the key/value
store and back. Meeting dates travel as ISO-8601 UTC strings
("2025-03-01T10:00:00.000Z") and are always rebuilt as aware datetimes.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from meetai.data.models import (
    UNTITLED_MEETING,
    ChatMessage,
    Contact,
    Meeting,
    UserAggregate,
    WorkWindow,
)

logger = logging.getLogger(__name__)

# Seconds fraction of any length, padded or cut to the 6 digits fromisoformat accepts
_FRACTION_RE = re.compile(r"(:\d{2})[.,](\d+)")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware datetime.

    A trailing "Z" is accepted; naive values are taken as UTC.
    Raises ValueError on malformed input.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not an ISO-8601 date: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso_datetime(value: datetime) -> str:
    """Format a datetime the way browsers print ``Date.toISOString()``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    # Keep sub-millisecond precision so a save/load cycle is lossless.
    timespec = "milliseconds" if utc.microsecond % 1000 == 0 else "microseconds"
    return utc.isoformat(timespec=timespec).replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def contact_to_dict(contact: Contact) -> dict:
    return {
        "id": contact.id,
        "name": contact.name,
        "email": contact.email,
        "number": contact.phone,
        "description": contact.description,
    }


def contact_from_dict(data: dict) -> Contact:
    return Contact(
        id=str(data["id"]),
        name=data.get("name", ""),
        email=data.get("email", ""),
        phone=data.get("number") or "",
        description=data.get("description") or "",
    )


def meeting_to_dict(meeting: Meeting) -> dict:
    return {
        "id": meeting.id,
        "title": meeting.title,
        "date": format_iso_datetime(meeting.date),
        "participants": list(meeting.participants),
        "notes": meeting.notes,
    }


def meeting_from_dict(data: dict) -> Meeting:
    """Rebuild a Meeting. Raises ValueError when the date is malformed."""
    return Meeting(
        id=str(data["id"]),
        title=data.get("title") or UNTITLED_MEETING,
        date=parse_iso_datetime(data.get("date", "")),
        participants=[str(p) for p in data.get("participants") or []],
        notes=data.get("notes") or "",
    )


def aggregate_to_dict(user: UserAggregate) -> dict:
    """Serialize an aggregate into plain JSON-ready data (input untouched)."""
    return {
        "isLoggedIn": user.authenticated,
        "name": user.display_name,
        "email": user.identifier,
        "passwordHash": user.secret,
        "avatar": user.avatar_reference,
        "location": user.location_label,
        "workTime": {"start": user.work_window.start, "end": user.work_window.end},
        "offDays": list(user.rest_days),
        "contacts": [contact_to_dict(c) for c in user.contacts],
        "meetings": [meeting_to_dict(m) for m in user.meetings],
    }


def aggregate_from_dict(data: dict) -> UserAggregate:
    """Rebuild an aggregate; meetings with unreadable dates are skipped."""
    meetings: list[Meeting] = []
    for raw in data.get("meetings") or []:
        try:
            meetings.append(meeting_from_dict(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Skipping stored meeting for %s: %s", data.get("email", "?"), exc,
            )
    meetings.sort(key=lambda m: m.date)

    work_time = data.get("workTime") or {}
    return UserAggregate(
        identifier=data["email"],
        display_name=data.get("name", ""),
        secret=data.get("passwordHash", ""),
        avatar_reference=data.get("avatar", ""),
        location_label=data.get("location", ""),
        work_window=WorkWindow(
            start=work_time.get("start", "09:00"),
            end=work_time.get("end", "17:00"),
        ),
        rest_days=[int(d) for d in data.get("offDays", [0, 6])],
        contacts=[contact_from_dict(c) for c in data.get("contacts") or []],
        meetings=meetings,
        authenticated=bool(data.get("isLoggedIn", False)),
    )


def users_to_dict(users: dict[str, UserAggregate]) -> dict:
    return {identifier: aggregate_to_dict(user) for identifier, user in users.items()}


def users_from_dict(data: dict) -> dict[str, UserAggregate]:
    return {identifier: aggregate_from_dict(raw) for identifier, raw in data.items()}


def chat_to_list(messages: list[ChatMessage]) -> list[dict]:
    return [{"role": m.role, "content": m.content} for m in messages]


def chat_from_list(data: list) -> list[ChatMessage]:
    return [
        ChatMessage(role=item["role"], content=item["content"])
        for item in data
        if isinstance(item, dict) and "role" in item and "content" in item
    ]

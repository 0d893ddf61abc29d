"""
MeetAI Assistant — Data Models.

One UserAggregate per registered email: profile, contacts and meetings,
persisted together as a single unit. The in-memory aggregate shown to the
user is always a copy of the persisted one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

UNTITLED_MEETING = "Untitled Meeting"

WEEKDAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)


@dataclass
class Contact:
    """A person the user can invite to meetings."""

    id: str
    name: str
    email: str
    phone: str = ""
    description: str = ""


@dataclass
class Meeting:
    """A scheduled meeting.

    ``participants`` holds Contact ids. Ids whose contact was deleted stay
    in the list; readers skip them.
    """

    id: str
    title: str
    date: datetime                    # timezone-aware
    participants: list[str] = field(default_factory=list)
    notes: str = ""


@dataclass
class WorkWindow:
    start: str = "09:00"              # "HH:MM"
    end: str = "17:00"                # "HH:MM"

    def label(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass
class UserAggregate:
    """Everything stored for one user, keyed by ``identifier`` (email)."""

    identifier: str
    display_name: str
    secret: str = ""                  # bcrypt hash, never the plain text
    avatar_reference: str = ""
    location_label: str = ""
    work_window: WorkWindow = field(default_factory=WorkWindow)
    rest_days: list[int] = field(default_factory=lambda: [0, 6])
    contacts: list[Contact] = field(default_factory=list)
    meetings: list[Meeting] = field(default_factory=list)
    authenticated: bool = False


@dataclass
class ChatMessage:
    role: str                         # "user" | "assistant"
    content: str


def make_guest() -> UserAggregate:
    """Return a fresh Guest aggregate (never persisted)."""
    return UserAggregate(
        identifier="",
        display_name="Guest",
        location_label="New York, USA",
        work_window=WorkWindow("09:00", "17:00"),
        rest_days=[0, 6],
        authenticated=False,
    )

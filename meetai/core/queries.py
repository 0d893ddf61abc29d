"""Read-only views over a user aggregate (no state changes here)."""

from __future__ import annotations

from datetime import datetime, tzinfo

from meetai.data.models import WEEKDAY_NAMES, Contact, Meeting, UserAggregate


def resolve_participants(user: UserAggregate, meeting: Meeting) -> list[Contact]:
    """Return the meeting's participants as contacts, in order.

    Ids with no live contact (e.g. deleted since) are skipped.
    """
    by_id = {c.id: c for c in user.contacts}
    return [by_id[pid] for pid in meeting.participants if pid in by_id]


def meetings_in_timeframe(
    meetings: list[Meeting], timeframe: str, now: datetime,
) -> list[Meeting]:
    """``future`` keeps meetings at or after ``now``; ``past`` keeps earlier ones."""
    if timeframe == "future":
        return [m for m in meetings if m.date >= now]
    if timeframe == "past":
        return [m for m in meetings if m.date < now]
    raise ValueError(f"Unknown timeframe: {timeframe!r}")


def format_meeting_time(when: datetime, tz: tzinfo | None = None) -> str:
    local = when.astimezone(tz) if tz is not None else when
    return local.strftime("%B %d, %Y at %I:%M %p")


def summarize_meetings(
    meetings: list[Meeting], timeframe: str, now: datetime, tz: tzinfo | None = None,
) -> str:
    """Human-readable list of future or past meetings for the assistant."""
    relevant = meetings_in_timeframe(meetings, timeframe, now)
    if not relevant:
        return f"You have no {timeframe} meetings in your calendar."

    lines = [f'- "{m.title}" on {format_meeting_time(m.date, tz)}' for m in relevant]
    return f"Here are the {timeframe} meetings from your calendar:\n" + "\n".join(lines)


def weekday_names(days: list[int]) -> str:
    """[0, 6] → "Sunday,Saturday". Out-of-range indices are dropped."""
    return ",".join(WEEKDAY_NAMES[d] for d in days if 0 <= d < len(WEEKDAY_NAMES))

"""
MeetAI Assistant — Domain Mutators.

Every change to a user's profile, contacts or meetings goes through
UserService. Each operation checks that someone is logged in, builds a new
aggregate from the current one, and commits it through the SessionManager so
the in-memory copy and the stored copy never diverge.

Outcomes are reported as MutationResult values; nothing here raises.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from meetai.core.forms import ProfileForm, describe_errors
from meetai.data.models import UNTITLED_MEETING, Contact, Meeting, WorkWindow
from meetai.data.serialization import parse_iso_datetime

if TYPE_CHECKING:
    from meetai.core.session import SessionManager

logger = logging.getLogger(__name__)

# Profile fields update_profile() is allowed to touch
PROFILE_FIELDS = frozenset({
    "display_name", "location_label", "avatar_reference", "work_window", "rest_days",
})


class MutationStatus(Enum):
    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass
class MutationResult:
    status: MutationStatus
    entity: Any = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is MutationStatus.OK


def new_id() -> str:
    return str(uuid.uuid4())


class UserService:
    """Profile, contact and meeting mutations for the current user."""

    def __init__(self, session: SessionManager) -> None:
        self._session = session

    def _unauthorized(self, operation: str) -> MutationResult:
        logger.warning("%s rejected: no user is logged in", operation)
        return MutationResult(MutationStatus.UNAUTHORIZED, message="Not logged in")

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(self, changes: dict[str, Any]) -> MutationResult:
        """Merge profile fields into the current user.

        Keys outside PROFILE_FIELDS (contacts, meetings, secret, identifier,
        ...) are dropped. Values are checked with ProfileForm; one bad value
        yields INVALID and nothing changes.
        """
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("update_profile")

        ignored = sorted(set(changes) - PROFILE_FIELDS)
        if ignored:
            logger.warning("update_profile ignoring fields: %s", ", ".join(ignored))

        accepted = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        window = accepted.get("work_window")
        if isinstance(window, WorkWindow):
            accepted["work_window"] = asdict(window)
        elif isinstance(window, dict):
            # Partial windows keep the current start/end
            accepted["work_window"] = {**asdict(user.work_window), **window}

        try:
            form = ProfileForm.model_validate(accepted)
        except ValidationError as exc:
            problems = describe_errors(exc)
            logger.warning("update_profile rejected for %s: %s", user.identifier, problems)
            return MutationResult(MutationStatus.INVALID, message=problems)

        fields = form.model_dump(exclude_none=True)
        if "work_window" in fields:
            fields["work_window"] = WorkWindow(**fields["work_window"])
        if "rest_days" in fields:
            fields["rest_days"] = sorted(set(fields["rest_days"]))

        updated = replace(user, **fields)
        self._session.commit(updated)
        logger.info("Profile updated for %s: %s", user.identifier, ", ".join(sorted(fields)))
        return MutationResult(MutationStatus.OK, entity=updated)

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def add_contact(
        self,
        name: str,
        email: str,
        phone: str | None = None,
        description: str | None = None,
    ) -> MutationResult:
        """Append a new contact with a fresh id."""
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("add_contact")

        contact = Contact(
            id=new_id(),
            name=name.strip(),
            email=email.strip(),
            phone=(phone or "").strip(),
            description=description or "",
        )
        self._session.commit(replace(user, contacts=[*user.contacts, contact]))
        logger.info("Contact added: %s '%s'", contact.id, contact.name)
        return MutationResult(MutationStatus.OK, entity=contact)

    def update_contact(self, contact: Contact) -> MutationResult:
        """Replace the contact that has the same id."""
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("update_contact")

        if not any(c.id == contact.id for c in user.contacts):
            logger.info("update_contact: no contact with id %s", contact.id)
            return MutationResult(MutationStatus.NOT_FOUND, message="Contact not found")

        contacts = [contact if c.id == contact.id else c for c in user.contacts]
        self._session.commit(replace(user, contacts=contacts))
        logger.info("Contact updated: %s", contact.id)
        return MutationResult(MutationStatus.OK, entity=contact)

    def delete_contact(self, contact_id: str) -> MutationResult:
        """Remove a contact. Meetings that reference it are left alone."""
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("delete_contact")

        removed = next((c for c in user.contacts if c.id == contact_id), None)
        if removed is None:
            logger.info("delete_contact: no contact with id %s", contact_id)
            return MutationResult(MutationStatus.NOT_FOUND, message="Contact not found")

        contacts = [c for c in user.contacts if c.id != contact_id]
        self._session.commit(replace(user, contacts=contacts))
        logger.info("Contact deleted: %s", contact_id)
        return MutationResult(MutationStatus.OK, entity=removed)

    # ------------------------------------------------------------------
    # Meetings
    # ------------------------------------------------------------------

    def add_meeting(
        self,
        date: str | datetime,
        title: str | None = None,
        participants: list[str] | None = None,
        notes: str | None = None,
    ) -> MutationResult:
        """Add a meeting and keep the list sorted by date.

        ``date`` is an ISO-8601 string or a datetime. An unreadable date
        yields INVALID; dates in the past are accepted.
        """
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("add_meeting")

        try:
            when = parse_iso_datetime(date) if isinstance(date, str) else date
            if not isinstance(when, datetime):
                raise ValueError(f"Not a date: {date!r}")
        except ValueError as exc:
            logger.warning("add_meeting rejected: %s", exc)
            return MutationResult(MutationStatus.INVALID, message=f"Invalid date: {date!r}")
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)

        meeting = Meeting(
            id=new_id(),
            title=(title or "").strip() or UNTITLED_MEETING,
            date=when,
            participants=list(participants or []),
            notes=notes or "",
        )
        meetings = sorted([*user.meetings, meeting], key=lambda m: m.date)
        self._session.commit(replace(user, meetings=meetings))
        logger.info("Meeting added: %s '%s' at %s", meeting.id, meeting.title, when.isoformat())
        return MutationResult(MutationStatus.OK, entity=meeting)

    def delete_meeting(self, meeting_id: str) -> MutationResult:
        user = self._session.current
        if not user.authenticated:
            return self._unauthorized("delete_meeting")

        removed = next((m for m in user.meetings if m.id == meeting_id), None)
        if removed is None:
            logger.info("delete_meeting: no meeting with id %s", meeting_id)
            return MutationResult(MutationStatus.NOT_FOUND, message="Meeting not found")

        meetings = [m for m in user.meetings if m.id != meeting_id]
        self._session.commit(replace(user, meetings=meetings))
        logger.info("Meeting deleted: %s", meeting_id)
        return MutationResult(MutationStatus.OK, entity=removed)

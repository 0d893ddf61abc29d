"""
MeetAI Assistant — Assistant Bridge.

UI-agnostic glue between a chat front end and the scheduling flow: packages
the current user's data with the typed instruction, runs the flow, applies
the tool requests it returns through UserService / SessionManager, and hands
back the reply text. A chat turn never raises; provider failures turn into a
fixed apology.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from meetai.core.queries import weekday_names
from meetai.core.schedule_flow import (
    NO_OUTPUT_REPLY,
    ContactPayload,
    HistoryTurn,
    MeetingPayload,
    ScheduleMeetingInput,
    ToolRequest,
    schedule_meeting,
)
from meetai.data.models import ChatMessage, UserAggregate
from meetai.data.serialization import format_iso_datetime

if TYPE_CHECKING:
    from meetai.core.session import SessionManager
    from meetai.core.user_service import UserService
    from meetai.data.db import ChatHistoryStore

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error. Please try again."
LOGIN_REQUIRED_REPLY = "Hello! I'm MeetAI. Please log in to get started."
GREETING = "Hello! I'm MeetAI, your intelligent scheduling assistant. How can I help you today?"


def build_request(
    user: UserAggregate,
    instruction: str,
    history: list[ChatMessage],
    open_ai_mode: bool = True,
) -> ScheduleMeetingInput:
    """Snapshot ``user`` into the assistant's request shape."""
    return ScheduleMeetingInput(
        instruction=instruction,
        contacts=[
            ContactPayload(
                id=c.id,
                name=c.name,
                email=c.email,
                number=c.phone or None,
                description=c.description or None,
            )
            for c in user.contacts
        ],
        meetings=[
            MeetingPayload(
                id=m.id,
                title=m.title,
                date=format_iso_datetime(m.date),
                participants=list(m.participants),
                notes=m.notes or None,
            )
            for m in user.meetings
        ],
        user_name=user.display_name,
        user_location=user.location_label,
        work_time=user.work_window.label(),
        off_days=weekday_names(user.rest_days),
        open_ai_mode=open_ai_mode,
        history=[HistoryTurn(role=m.role, content=m.content) for m in history],
    )


def settings_to_profile_changes(tool_input: dict, user: UserAggregate) -> dict:
    """Map updateUserSettings arguments onto UserService.update_profile fields.

    The email is the account key and cannot change, so it is not mapped.
    """
    changes: dict = {}
    if tool_input.get("name"):
        changes["display_name"] = tool_input["name"]
    if tool_input.get("location"):
        changes["location_label"] = tool_input["location"]
    if tool_input.get("workTimeStart") or tool_input.get("workTimeEnd"):
        changes["work_window"] = {
            "start": tool_input.get("workTimeStart") or user.work_window.start,
            "end": tool_input.get("workTimeEnd") or user.work_window.end,
        }
    if tool_input.get("offDays") is not None:
        changes["rest_days"] = tool_input["offDays"]
    if tool_input.get("email") and tool_input["email"] != user.identifier:
        logger.warning("Ignoring request to change account email for %s", user.identifier)
    return changes


class AssistantBridge:
    """Runs chat turns for one session and keeps its transcript."""

    def __init__(
        self,
        session: SessionManager,
        service: UserService,
        history_store: ChatHistoryStore,
    ) -> None:
        from meetai.config import settings

        self._session = session
        self._service = service
        self._history_store = history_store
        self._history_turns = settings.CHAT_HISTORY_TURNS
        self._open_ai_mode = settings.OPEN_AI_MODE
        self._messages = [ChatMessage("assistant", LOGIN_REQUIRED_REPLY)]
        self._identifier = ""
        self._handlers: dict[str, Callable[[dict], None]] = {
            "createMeeting": self._apply_create_meeting,
            "createNewContact": self._apply_create_contact,
            "updateUserSettings": self._apply_update_settings,
            "logoutUser": self._apply_logout,
        }
        self._unsubscribe = session.subscribe(self._on_user_changed)
        self._on_user_changed(session.current)

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def close(self) -> None:
        self._unsubscribe()

    def _on_user_changed(self, user: UserAggregate) -> None:
        """Swap transcripts when a different user logs in or out."""
        if user.identifier == self._identifier:
            return
        self._identifier = user.identifier
        if user.authenticated:
            self._messages = self._history_store.load(user.identifier) or [
                ChatMessage("assistant", GREETING)
            ]
        else:
            self._messages = [ChatMessage("assistant", LOGIN_REQUIRED_REPLY)]

    # ------------------------------------------------------------------
    # Public: one chat turn
    # ------------------------------------------------------------------

    async def handle_instruction(self, text: str) -> str:
        """Send ``text`` to the assistant and return its reply."""
        if not text or not text.strip():
            return ""
        user = self._session.current
        if not user.authenticated:
            return LOGIN_REQUIRED_REPLY

        identifier = user.identifier
        self._messages.append(ChatMessage("user", text))
        history = self._messages[-self._history_turns:]
        messages = self._messages

        try:
            result = await schedule_meeting(
                build_request(user, text, history, self._open_ai_mode),
            )
        except Exception as exc:
            logger.error("Assistant error: %s", exc)
            reply = ERROR_REPLY
        else:
            self.apply_tool_requests(result.tool_requests)
            reply = result.response or NO_OUTPUT_REPLY

        messages.append(ChatMessage("assistant", reply))
        self._history_store.save(identifier, messages)
        return reply

    def apply_tool_requests(self, requests: list[ToolRequest]) -> None:
        """Apply tool requests in order; unknown names are ignored."""
        for request in requests:
            handler = self._handlers.get(request.name)
            if handler is None:
                logger.debug("No local action for tool '%s'", request.name)
                continue
            try:
                handler(request.input)
            except Exception as exc:
                logger.error("Failed to apply tool '%s': %s", request.name, exc)

    # ------------------------------------------------------------------
    # Tool handlers
    # ------------------------------------------------------------------

    def _apply_create_meeting(self, data: dict) -> None:
        result = self._service.add_meeting(
            date=data["date"],
            title=data.get("title"),
            participants=data.get("participants"),
            notes=data.get("notes"),
        )
        logger.info("createMeeting → %s", result.status.value)

    def _apply_create_contact(self, data: dict) -> None:
        result = self._service.add_contact(
            name=data["name"],
            email=data["email"],
            phone=data.get("number"),
            description=data.get("description"),
        )
        logger.info("createNewContact → %s", result.status.value)

    def _apply_update_settings(self, data: dict) -> None:
        changes = settings_to_profile_changes(data, self._session.current)
        if not changes:
            logger.info("updateUserSettings had nothing to change")
            return
        result = self._service.update_profile(changes)
        logger.info("updateUserSettings → %s", result.status.value)

    def _apply_logout(self, data: dict) -> None:
        self._session.logout()

"""
MeetAI Assistant — Scheduling Conversation Flow.

Brain of the chat: sends one user instruction, plus a snapshot of the user's
contacts, meetings and work preferences, to the configured LLM together with
the tool declarations. Tool calls are executed and their results fed back
until the model answers in plain text (or the round limit is hit).

Mutating tool calls are only recorded here, as ToolRequests; applying them
to the user's data is the AssistantBridge's job.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from meetai.core.llm import LLMReply, ToolCall, complete_with_tools
from meetai.core.tools import TOOL_SPECS, ToolContext, execute_tool
from meetai.data.models import Meeting
from meetai.data.serialization import parse_iso_datetime

logger = logging.getLogger(__name__)

NO_OUTPUT_REPLY = "I'm sorry, I couldn't process that. Please try again."


# ---------------------------------------------------------------------------
# Request / response contract (camelCase on the wire)
# ---------------------------------------------------------------------------

class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactPayload(_WireModel):
    id: str
    name: str
    email: str
    number: str | None = None
    description: str | None = None


class MeetingPayload(_WireModel):
    id: str
    title: str
    date: str          # ISO-8601
    participants: list[str] = []
    notes: str | None = None


class HistoryTurn(_WireModel):
    role: str
    content: str


class ScheduleMeetingInput(_WireModel):
    """Everything the assistant sees for one turn.

    JSON example:
    {
        "instruction": "Book a sync with Jane tomorrow at 10",
        "contacts": [{"id": "c1", "name": "Jane Smith", "email": "jane@example.com"}],
        "meetings": [{"id": "m1", "title": "Review", "date": "2025-03-01T10:00:00.000Z", "participants": []}],
        "userName": "Alex",
        "userLocation": "London, UK",
        "workTime": "09:00-17:00",
        "offDays": "Sunday,Saturday",
        "openAiMode": true,
        "history": [{"role": "user", "content": "Book a sync with Jane tomorrow at 10"}]
    }
    """
    instruction: str
    contacts: list[ContactPayload] = []
    meetings: list[MeetingPayload] = []
    user_name: str
    user_location: str
    work_time: str
    off_days: str
    open_ai_mode: bool = True
    history: list[HistoryTurn] = []


class ToolRequest(_WireModel):
    name: str
    input: dict = Field(default_factory=dict)


class ScheduleMeetingOutput(_WireModel):
    response: str
    tool_requests: list[ToolRequest] = []


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are an AI assistant named MeetAI. Your role is to help users manage their calendar, \
contacts, and settings, and answer general questions in a friendly, conversational way.

The user's name is: {user_name}
The user's location is: {user_location}
The user's working hours are: {work_time}
The user's off days are: {off_days}
The current date and time is: {now}
Open-ended AI mode: {open_ai_mode}

The following contacts are available:
{contacts}

The user's existing meetings are:
{meetings}

This is the recent conversation history. Use it to understand context from previous turns:
{history}

Your Task:
Based on the conversation history and the user's latest instruction, decide which tool to use, if any.
- Be conversational and proactive. If you need information, ask for it clearly. For example, if a user \
wants to schedule a meeting, ask for the title, date, and time if they are missing.
- If you have all the information needed for a tool, use it. Once a tool is used (e.g., a meeting is \
created), confirm this with the user.
- Meetings cannot be in the past. If a user tries to schedule a meeting in the past, politely inform \
them and ask for a future date/time.
- Meeting participants are contact IDs. If participants are mentioned who are not in the contact list, \
inform the user that they need to add the contact first.
- If open-ended AI mode is on, you can also answer general knowledge questions.
- Your final response should always be a user-facing message, either confirming an action or asking \
for more information.
"""


def render_system_prompt(request: ScheduleMeetingInput, now: datetime) -> str:
    if request.contacts:
        contacts = "\n".join(f"- ID: {c.id}, Name: {c.name} ({c.email})" for c in request.contacts)
    else:
        contacts = "No contacts available."

    if request.meetings:
        meetings = "\n".join(f"- Title: {m.title}, Date: {m.date}" for m in request.meetings)
    else:
        meetings = "No meetings scheduled."

    history = "\n".join(f"{t.role}: {t.content}" for t in request.history) or "(none)"

    return _SYSTEM_PROMPT.format(
        user_name=request.user_name,
        user_location=request.user_location,
        work_time=request.work_time,
        off_days=request.off_days,
        now=now.isoformat(),
        open_ai_mode="on" if request.open_ai_mode else "off",
        contacts=contacts,
        meetings=meetings,
        history=history,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _snapshot_meetings(payloads: list[MeetingPayload]) -> list[Meeting]:
    """Rebuild Meeting objects from the request so tools read the snapshot."""
    meetings: list[Meeting] = []
    for p in payloads:
        try:
            when = parse_iso_datetime(p.date)
        except ValueError:
            logger.warning("Snapshot meeting %s has unreadable date %r", p.id, p.date)
            continue
        meetings.append(Meeting(p.id, p.title, when, list(p.participants), p.notes or ""))
    return sorted(meetings, key=lambda m: m.date)


def _describe_calls(calls: list[ToolCall]) -> str:
    return "\n".join(
        f"[called {c.name} with {json.dumps(c.arguments, ensure_ascii=False)}]" for c in calls
    )


def _format_output(value: object) -> str:
    return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)


def _tool_context() -> ToolContext:
    from meetai.config import settings

    return ToolContext(
        now=datetime.now(timezone.utc),
        tz=ZoneInfo(settings.TIMEZONE),
        weather_api_key=settings.WEATHERAPI_KEY,
    )


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------

async def schedule_meeting(request: ScheduleMeetingInput) -> ScheduleMeetingOutput:
    """Run one assistant turn. Raises on provider errors — callers should handle them."""
    from meetai.config import settings

    context = _tool_context()
    context.meetings = _snapshot_meetings(request.meetings)
    system = render_system_prompt(request, context.now)

    messages: list[dict] = [{"role": "user", "content": request.instruction}]
    requests: list[ToolRequest] = []
    reply = LLMReply()

    for round_no in range(1, settings.ASSISTANT_MAX_TOOL_ROUNDS + 1):
        reply = await complete_with_tools(
            system=system,
            messages=messages,
            tools=TOOL_SPECS,
            max_tokens=settings.LLM_MAX_TOKENS,
        )
        if not reply.tool_calls:
            break

        logger.info(
            "Round %d: model requested %s", round_no, ", ".join(c.name for c in reply.tool_calls),
        )
        results = []
        for call in reply.tool_calls:
            outcome = await execute_tool(call.name, call.arguments, context)
            if outcome.valid:
                requests.append(ToolRequest(name=call.name, input=outcome.arguments))
            results.append(f"{call.name}: {_format_output(outcome.output)}")

        assistant_turn = (reply.text + "\n" if reply.text else "") + _describe_calls(reply.tool_calls)
        messages.append({"role": "assistant", "content": assistant_turn})
        messages.append({
            "role": "user",
            "content": "Tool results:\n" + "\n".join(results)
            + "\nNow reply to the user based on these results.",
        })
    else:
        logger.warning("Tool round limit (%d) reached", settings.ASSISTANT_MAX_TOOL_ROUNDS)

    text = reply.text.strip()
    if not text:
        logger.info("Model produced no text output")
        text = NO_OUTPUT_REPLY
    return ScheduleMeetingOutput(response=text, tool_requests=requests)

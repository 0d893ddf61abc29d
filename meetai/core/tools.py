"""
MeetAI Assistant — Assistant Tools.

The fixed set of tools offered to the LLM. Each tool has a pydantic input
model (validation + JSON schema) and an executor. Mutating tools only
acknowledge the call; the AssistantBridge applies them to the user's data
afterwards. Read-only tools answer from the request snapshot or from
WeatherAPI.com and never raise: failures become "Sorry, I couldn't ..." text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from meetai.core.forms import EMAIL_PATTERN, TIME_PATTERN, RestDays
from meetai.core.llm import ToolSpec
from meetai.core.queries import summarize_meetings
from meetai.data.models import Meeting
from meetai.integrations.weather_api import get_current_weather, search_locations

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool input contracts
# ---------------------------------------------------------------------------

class CreateMeetingInput(BaseModel):
    """JSON example:
    {"title": "Sync", "date": "2025-03-01T10:00:00Z", "participants": ["<contact id>"], "notes": ""}
    """
    title: str | None = Field(None, description='The title of the meeting. Defaults to "Untitled Meeting" if not provided.')
    date: str = Field(description="The date and time of the meeting in ISO 8601 format.")
    participants: list[str] | None = Field(None, description="An array of participant contact IDs. Can be empty.")
    notes: str | None = Field(None, description="Optional notes for the meeting.")


class CreateContactInput(BaseModel):
    name: str = Field(min_length=2, description="The contact's full name.")
    email: str = Field(pattern=EMAIL_PATTERN, description="The contact's email address.")
    number: str | None = Field(None, description="Optional phone number.")
    description: str | None = Field(None, description="Optional note about the contact.")


class UpdateSettingsInput(BaseModel):
    name: str | None = Field(None, description="The user's display name.")
    email: str | None = Field(None, description="The user's email address.")
    location: str | None = Field(None, description="The user's location, e.g. 'London, UK'.")
    workTimeStart: str | None = Field(None, pattern=TIME_PATTERN, description="Start of working hours, HH:MM (24h).")
    workTimeEnd: str | None = Field(None, pattern=TIME_PATTERN, description="End of working hours, HH:MM (24h).")
    offDays: RestDays | None = Field(
        None, description="Days off as weekday numbers, 0 = Sunday ... 6 = Saturday. At most 6.",
    )


class ViewMeetingsInput(BaseModel):
    timeframe: Literal["future", "past"] = Field(description="Specify whether to view 'future' or 'past' meetings.")


class LogoutInput(BaseModel):
    pass


class WeatherInput(BaseModel):
    location: str = Field(description="The location to retrieve weather information for.")


class SearchLocationInput(BaseModel):
    query: str = Field(description='The search query, e.g., "coffee shop" or "pizza".')
    location: str = Field(description='The area to search in, e.g., "Mountain View, CA".')


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

MUTATING_TOOLS = frozenset({"createMeeting", "createNewContact", "updateUserSettings", "logoutUser"})

_TOOL_MODELS: dict[str, tuple[type[BaseModel], str]] = {
    "createMeeting": (
        CreateMeetingInput,
        "Creates a new meeting and saves it to the user's calendar. "
        "Use this when the user asks to schedule, book, or create a meeting.",
    ),
    "createNewContact": (
        CreateContactInput,
        "Adds a new contact to the user's contact list. "
        "Use this when the user wants to add or create a new contact.",
    ),
    "updateUserSettings": (
        UpdateSettingsInput,
        "Updates the user's account settings, such as name, location, or work schedule. "
        "Use this when the user wants to modify, change, or update their settings.",
    ),
    "viewMeetings": (
        ViewMeetingsInput,
        "Displays the user's upcoming or past meetings. "
        "Use this when the user asks to see, show, or list their meetings.",
    ),
    "logoutUser": (
        LogoutInput,
        "Logs the current user out of the application. "
        "Use this when the user asks to log out or sign out.",
    ),
    "getWeather": (
        WeatherInput,
        "Retrieves the current weather conditions for a given location. "
        "Use this when the user asks about the weather.",
    ),
    "searchLocation": (
        SearchLocationInput,
        "Searches for a location, like a coffee shop or restaurant. "
        "Use this to help find a venue for a meeting.",
    ),
}


def _simplify_schema(node: Any) -> Any:
    """Strip pydantic extras providers choke on and collapse ``X | None`` to ``X``."""
    if isinstance(node, list):
        return [_simplify_schema(item) for item in node]
    if not isinstance(node, dict):
        return node

    any_of = node.get("anyOf")
    if any_of:
        non_null = [s for s in any_of if s.get("type") != "null"]
        if len(non_null) == 1:
            merged = {k: v for k, v in node.items() if k != "anyOf"}
            merged.update(non_null[0])
            node = merged

    cleaned = {}
    for key, value in node.items():
        if key in ("title", "default"):
            continue
        if key == "properties":
            cleaned[key] = {name: _simplify_schema(prop) for name, prop in value.items()}
        else:
            cleaned[key] = _simplify_schema(value)
    return cleaned


def _tool_spec(name: str) -> ToolSpec:
    model, description = _TOOL_MODELS[name]
    parameters = _simplify_schema(model.model_json_schema())
    parameters.setdefault("properties", {})
    return ToolSpec(name=name, description=description, parameters=parameters)


TOOL_SPECS: list[ToolSpec] = [_tool_spec(name) for name in _TOOL_MODELS]


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

@dataclass
class ToolContext:
    """Data a tool may read while answering: the request snapshot, not live state."""

    meetings: list[Meeting] = field(default_factory=list)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tz: tzinfo | None = None
    weather_api_key: str = ""


@dataclass
class ToolOutcome:
    output: Any
    valid: bool = True
    arguments: dict = field(default_factory=dict)


def validate_arguments(name: str, arguments: dict) -> BaseModel:
    """Validate raw model arguments. Raises KeyError / ValidationError."""
    model, _ = _TOOL_MODELS[name]
    return model.model_validate(arguments)


async def execute_tool(name: str, arguments: dict, context: ToolContext) -> ToolOutcome:
    """Run one tool call and return what to feed back to the model."""
    if name not in _TOOL_MODELS:
        logger.warning("Model asked for unknown tool '%s'", name)
        return ToolOutcome(output=f"Unknown tool: {name}", valid=False)

    try:
        parsed = validate_arguments(name, arguments)
    except ValidationError as exc:
        logger.warning("Invalid input for tool '%s': %s", name, exc)
        return ToolOutcome(
            output={"success": False, "error": f"Invalid input: {exc.error_count()} problem(s)"},
            valid=False,
        )

    clean_args = parsed.model_dump(exclude_none=True)
    if name in MUTATING_TOOLS:
        return ToolOutcome(output={"success": True}, arguments=clean_args)

    if name == "viewMeetings":
        text = summarize_meetings(context.meetings, parsed.timeframe, context.now, context.tz)
        return ToolOutcome(output=text, arguments=clean_args)
    if name == "getWeather":
        return ToolOutcome(output=await _weather_report(parsed.location, context), arguments=clean_args)
    if name == "searchLocation":
        return ToolOutcome(
            output=await _location_search(parsed.query, parsed.location, context),
            arguments=clean_args,
        )

    return ToolOutcome(output={"success": True}, arguments=clean_args)


async def _weather_report(location: str, context: ToolContext) -> str:
    weather = await get_current_weather(location, context.weather_api_key)
    if weather is None:
        return f"Sorry, I couldn't get the weather for {location}."
    return (
        f"The weather in {location} is {weather.condition} "
        f"with a temperature of {weather.temp_c} degrees Celsius."
    )


async def _location_search(query: str, location: str, context: ToolContext) -> str:
    matches = await search_locations(f"{query} in {location}", context.weather_api_key)
    if matches is None:
        return f'Sorry, I couldn\'t search for "{query}" near {location}.'
    if not matches:
        return f'I couldn\'t find any locations matching "{query}" near {location}.'
    places = "; ".join(f"{m.name}, {m.region}" for m in matches)
    return f"I found these locations: {places}. Which one would you like?"

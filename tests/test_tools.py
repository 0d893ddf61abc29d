"""Tests for meetai.core.tools — declarations, validation and read-only executors."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from pydantic import ValidationError

from meetai.core.tools import (
    MUTATING_TOOLS,
    TOOL_SPECS,
    ToolContext,
    execute_tool,
    validate_arguments,
)
from meetai.data.models import Meeting
from meetai.integrations.weather_api import CurrentWeather, LocationMatch

NOW = datetime(2025, 3, 3, 12, tzinfo=timezone.utc)


def _context(**overrides):
    ctx = ToolContext(now=NOW, tz=timezone.utc, weather_api_key="wkey")
    for key, value in overrides.items():
        setattr(ctx, key, value)
    return ctx


def _spec(name):
    return next(s for s in TOOL_SPECS if s.name == name)


class TestDeclarations:
    def test_tool_set(self):
        assert [s.name for s in TOOL_SPECS] == [
            "createMeeting",
            "createNewContact",
            "updateUserSettings",
            "viewMeetings",
            "logoutUser",
            "getWeather",
            "searchLocation",
        ]

    def test_schemas_are_plain_objects(self):
        for spec in TOOL_SPECS:
            assert spec.parameters["type"] == "object"
            assert "properties" in spec.parameters
            assert "title" not in spec.parameters
            assert spec.description

    def test_optional_fields_collapse_to_single_type(self):
        props = _spec("createMeeting").parameters["properties"]
        assert props["title"]["type"] == "string"
        assert "anyOf" not in props["title"]
        assert props["participants"]["type"] == "array"
        assert _spec("createMeeting").parameters["required"] == ["date"]

    def test_timeframe_is_enum(self):
        props = _spec("viewMeetings").parameters["properties"]
        assert props["timeframe"]["enum"] == ["future", "past"]

    def test_logout_has_no_parameters(self):
        assert _spec("logoutUser").parameters["properties"] == {}


class TestValidation:
    @pytest.mark.parametrize("off_days", [[7, 9, -1], [7], [0, 1, 2, 3, 4, 5, 6], ["Saturday"]])
    def test_off_days_must_be_weekdays(self, off_days):
        with pytest.raises(ValidationError):
            validate_arguments("updateUserSettings", {"offDays": off_days})

    def test_valid_off_days(self):
        parsed = validate_arguments("updateUserSettings", {"offDays": [0, 6]})
        assert parsed.offDays == [0, 6]

    def test_work_time_shape(self):
        with pytest.raises(ValidationError):
            validate_arguments("updateUserSettings", {"workTimeStart": "8am"})
        assert validate_arguments("updateUserSettings", {"workTimeEnd": "18:30"}).workTimeEnd == "18:30"

    def test_off_days_schema_is_bounded(self):
        off_days = _spec("updateUserSettings").parameters["properties"]["offDays"]
        assert off_days["type"] == "array"
        assert off_days["maxItems"] == 6
        assert off_days["items"] == {"type": "integer", "minimum": 0, "maximum": 6}

    @pytest.mark.asyncio
    async def test_out_of_range_off_days_not_acknowledged(self):
        outcome = await execute_tool("updateUserSettings", {"offDays": [7, 9, -1]}, _context())
        assert outcome.valid is False
        assert outcome.output["success"] is False

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        outcome = await execute_tool("launchRocket", {}, _context())
        assert outcome.valid is False

    @pytest.mark.asyncio
    async def test_contact_name_too_short(self):
        outcome = await execute_tool("createNewContact", {"name": "J", "email": "j@x.com"}, _context())
        assert outcome.valid is False
        assert outcome.output["success"] is False

    @pytest.mark.asyncio
    async def test_contact_bad_email(self):
        outcome = await execute_tool("createNewContact", {"name": "Jane", "email": "jane"}, _context())
        assert outcome.valid is False

    @pytest.mark.asyncio
    async def test_meeting_requires_date(self):
        outcome = await execute_tool("createMeeting", {"title": "Sync"}, _context())
        assert outcome.valid is False

    @pytest.mark.asyncio
    async def test_bad_timeframe(self):
        outcome = await execute_tool("viewMeetings", {"timeframe": "someday"}, _context())
        assert outcome.valid is False


class TestMutatingTools:
    @pytest.mark.asyncio
    async def test_acknowledged_with_clean_arguments(self):
        outcome = await execute_tool(
            "createMeeting",
            {"title": "Sync", "date": "2025-03-05T10:00:00Z", "notes": None},
            _context(),
        )
        assert outcome.valid is True
        assert outcome.output == {"success": True}
        assert outcome.arguments == {"title": "Sync", "date": "2025-03-05T10:00:00Z"}

    @pytest.mark.asyncio
    async def test_logout(self):
        outcome = await execute_tool("logoutUser", {}, _context())
        assert outcome.valid is True
        assert outcome.arguments == {}

    def test_mutating_set(self):
        assert MUTATING_TOOLS == {"createMeeting", "createNewContact", "updateUserSettings", "logoutUser"}


class TestViewMeetings:
    @pytest.mark.asyncio
    async def test_reads_snapshot(self):
        meetings = [
            Meeting(id="m1", title="Old", date=datetime(2025, 3, 1, 9, tzinfo=timezone.utc)),
            Meeting(id="m2", title="Sync", date=datetime(2025, 3, 5, 10, tzinfo=timezone.utc)),
        ]
        outcome = await execute_tool("viewMeetings", {"timeframe": "future"}, _context(meetings=meetings))
        assert '"Sync"' in outcome.output
        assert '"Old"' not in outcome.output

    @pytest.mark.asyncio
    async def test_no_meetings(self):
        outcome = await execute_tool("viewMeetings", {"timeframe": "past"}, _context())
        assert outcome.output == "You have no past meetings in your calendar."


class TestWeather:
    @pytest.mark.asyncio
    async def test_weather_report(self):
        weather = CurrentWeather(
            location="London", condition="Partly cloudy", temp_c=12.0,
            feelslike_c=10.5, humidity=70, wind_kph=14.0,
        )
        with patch("meetai.core.tools.get_current_weather", AsyncMock(return_value=weather)) as mock_get:
            outcome = await execute_tool("getWeather", {"location": "London"}, _context())

        mock_get.assert_awaited_once_with("London", "wkey")
        assert outcome.output == (
            "The weather in London is Partly cloudy with a temperature of 12.0 degrees Celsius."
        )

    @pytest.mark.asyncio
    async def test_weather_failure(self):
        with patch("meetai.core.tools.get_current_weather", AsyncMock(return_value=None)):
            outcome = await execute_tool("getWeather", {"location": "Atlantis"}, _context())
        assert outcome.output == "Sorry, I couldn't get the weather for Atlantis."
        assert outcome.valid is True


class TestSearchLocation:
    @pytest.mark.asyncio
    async def test_matches(self):
        matches = [
            LocationMatch(name="Blue Bottle", region="California", country="USA"),
            LocationMatch(name="Red Rock", region="California", country="USA"),
        ]
        with patch("meetai.core.tools.search_locations", AsyncMock(return_value=matches)) as mock_search:
            outcome = await execute_tool(
                "searchLocation", {"query": "coffee", "location": "Mountain View"}, _context(),
            )

        mock_search.assert_awaited_once_with("coffee in Mountain View", "wkey")
        assert outcome.output == (
            "I found these locations: Blue Bottle, California; Red Rock, California. "
            "Which one would you like?"
        )

    @pytest.mark.asyncio
    async def test_no_matches(self):
        with patch("meetai.core.tools.search_locations", AsyncMock(return_value=[])):
            outcome = await execute_tool(
                "searchLocation", {"query": "pizza", "location": "Nowhere"}, _context(),
            )
        assert outcome.output.startswith("I couldn't find any locations")

    @pytest.mark.asyncio
    async def test_failure(self):
        with patch("meetai.core.tools.search_locations", AsyncMock(return_value=None)):
            outcome = await execute_tool(
                "searchLocation", {"query": "pizza", "location": "Rome"}, _context(),
            )
        assert outcome.output.startswith("Sorry, I couldn't search")

"""Tests for meetai.data.serialization — dates and aggregate blobs."""

from datetime import datetime, timedelta, timezone

import pytest

from meetai.data.models import ChatMessage, Contact, Meeting, UserAggregate, WorkWindow
from meetai.data.serialization import (
    aggregate_from_dict,
    aggregate_to_dict,
    chat_from_list,
    format_iso_datetime,
    parse_iso_datetime,
)


class TestParseIsoDatetime:
    def test_zulu_suffix(self):
        parsed = parse_iso_datetime("2025-03-01T10:00:00Z")
        assert parsed == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    def test_browser_format_with_millis(self):
        parsed = parse_iso_datetime("2025-03-01T10:00:00.000Z")
        assert parsed == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    def test_offset_is_kept_as_instant(self):
        parsed = parse_iso_datetime("2025-03-01T12:00:00+02:00")
        assert parsed == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        parsed = parse_iso_datetime("2025-03-01T10:00:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value, micros", [
        ("2025-03-01T10:00:00.5Z", 500000),
        ("2025-03-01T10:00:00.12Z", 120000),
        ("2025-03-01T10:00:00.1234567Z", 123456),
        ("2025-03-01T10:00:00,25+00:00", 250000),
    ])
    def test_any_fraction_length(self, value, micros):
        parsed = parse_iso_datetime(value)
        assert parsed == datetime(2025, 3, 1, 10, 0, 0, micros, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", "tomorrow at 10", "2025-13-45T99:00:00Z", None])
    def test_malformed_raises_value_error(self, value):
        with pytest.raises(ValueError):
            parse_iso_datetime(value)


class TestFormatIsoDatetime:
    def test_utc_millis_with_z(self):
        value = datetime(2025, 3, 1, 10, tzinfo=timezone.utc)
        assert format_iso_datetime(value) == "2025-03-01T10:00:00.000Z"

    def test_converts_offsets_to_utc(self):
        value = datetime(2025, 3, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert format_iso_datetime(value) == "2025-03-01T10:00:00.000Z"

    def test_keeps_microseconds(self):
        value = datetime(2025, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert parse_iso_datetime(format_iso_datetime(value)) == value


def _sample_user():
    return UserAggregate(
        identifier="alex@x.com",
        display_name="Alex",
        secret="$2b$04$hash",
        location_label="London, UK",
        work_window=WorkWindow("08:00", "16:30"),
        rest_days=[5, 6],
        contacts=[Contact(id="c1", name="Jane", email="jane@x.com", phone="555")],
        meetings=[
            Meeting(
                id="m1",
                title="Sync",
                date=datetime(2025, 3, 1, 10, tzinfo=timezone.utc),
                participants=["c1", "gone"],
                notes="bring slides",
            )
        ],
    )


class TestAggregateBlob:
    def test_wire_layout(self):
        data = aggregate_to_dict(_sample_user())
        assert data["email"] == "alex@x.com"
        assert data["workTime"] == {"start": "08:00", "end": "16:30"}
        assert data["offDays"] == [5, 6]
        assert data["contacts"][0]["number"] == "555"
        assert data["meetings"][0]["date"] == "2025-03-01T10:00:00.000Z"

    def test_round_trip(self):
        user = _sample_user()
        assert aggregate_from_dict(aggregate_to_dict(user)) == user

    def test_to_dict_does_not_mutate_input(self):
        user = _sample_user()
        aggregate_to_dict(user)
        assert isinstance(user.meetings[0].date, datetime)

    def test_bad_meeting_date_is_skipped(self):
        data = aggregate_to_dict(_sample_user())
        data["meetings"].append({"id": "m2", "title": "Broken", "date": "not a date"})
        user = aggregate_from_dict(data)
        assert [m.id for m in user.meetings] == ["m1"]

    def test_missing_title_defaults(self):
        data = aggregate_to_dict(_sample_user())
        data["meetings"][0].pop("title")
        assert aggregate_from_dict(data).meetings[0].title == "Untitled Meeting"


def test_chat_from_list_skips_malformed_items():
    messages = chat_from_list([{"role": "user", "content": "hi"}, {"role": "x"}, "junk"])
    assert messages == [ChatMessage("user", "hi")]

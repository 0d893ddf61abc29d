"""
MeetAI Assistant — Input forms.

Pydantic contracts for user-entered data: account signup/login, contacts and
profile settings. The Telegram commands validate arguments with them before
touching the session, and UserService.update_profile validates every change
with ProfileForm so a bad value never reaches the stored aggregate.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, ValidationError

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Weekday = Annotated[int, Field(ge=0, le=6)]
# Six at most: a week needs at least one working day
RestDays = Annotated[list[Weekday], Field(max_length=6)]


class _Form(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class SignupForm(_Form):
    name: str = Field(min_length=2)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class LoginForm(_Form):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class ContactForm(_Form):
    name: str = Field(min_length=2)
    email: str = Field(pattern=EMAIL_PATTERN)
    number: str = ""
    description: str = ""


class WorkWindowForm(_Form):
    start: str = Field(pattern=TIME_PATTERN)
    end: str = Field(pattern=TIME_PATTERN)


class ProfileForm(_Form):
    """Fields update_profile() may change. None means "leave as is"."""

    display_name: str | None = Field(None, min_length=2)
    location_label: str | None = Field(None, min_length=2)
    avatar_reference: str | None = None
    work_window: WorkWindowForm | None = None
    rest_days: RestDays | None = None


def describe_errors(exc: ValidationError) -> str:
    """One clause per problem, e.g. "email: has an invalid format"."""
    lines = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        message = "has an invalid format" if error["type"] == "string_pattern_mismatch" else error["msg"]
        lines.append(f"{field}: {message}" if field else message)
    return "; ".join(lines)

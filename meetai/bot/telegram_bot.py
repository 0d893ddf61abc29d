"""
MeetAI Assistant — Telegram Bot.

Chat front end for MeetAI. Each Telegram chat gets its own workspace (its own
key/value namespace, session, user service and assistant bridge), the same way
each browser profile had its own local storage.

Commands manage the account, settings, contacts and meetings; their
arguments go through the forms in meetai.core.forms before anything is
stored. Any other text goes to the assistant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from functools import wraps
from typing import Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from pydantic import ValidationError
from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from meetai.config import settings
from meetai.core.assistant import AssistantBridge
from meetai.core.forms import ContactForm, LoginForm, SignupForm, describe_errors
from meetai.core.queries import format_meeting_time, resolve_participants, weekday_names
from meetai.core.session import SessionManager
from meetai.core.user_service import MutationStatus, UserService
from meetai.data.db import ChatHistoryStore, KeyValueStore, UserStore
from meetai.data.models import WEEKDAY_NAMES
from meetai.integrations.avatar import decode_data_uri, generate_avatar
from meetai.integrations.weather_api import forecast_days, get_current_weather

logger = logging.getLogger(__name__)

_HELP_TEXT = (
    "MeetAI — your scheduling assistant.\n\n"
    "/signup <name> <email> <password> — create an account\n"
    "/login <email> <password> — log in\n"
    "/logout — log out\n"
    "/me — show your profile\n"
    "/settings <field> <value> — change name, location, hours or offdays\n"
    "/avatar <description> — generate a profile picture\n"
    "/contacts — list contacts\n"
    "/addcontact <name> <email> [phone] — add a contact\n"
    "/editcontact <number> <name|email|phone|note> <value> — edit a contact\n"
    "/deletecontact <number> — delete a contact from /contacts\n"
    "/meetings — list meetings\n"
    "/deletemeeting <number> — delete a meeting from /meetings\n"
    "/weather — weather at your location\n"
    "/forecast — 5-day forecast for your location\n\n"
    "Or just tell me what you need, e.g. \"book a sync with Jane tomorrow at 10\"."
)

_ONBOARDING_TEXT = (
    "Welcome aboard! Start by adding a contact, then ask me to schedule a meeting. "
    "You can set your location and working hours by just telling me."
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Silently ignore users outside ALLOWED_USER_IDS (when the list is set)."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        allowed = settings.ALLOWED_USER_IDS
        if allowed and (user is None or user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Per-chat workspace
# ---------------------------------------------------------------------------


@dataclass
class Workspace:
    session: SessionManager
    service: UserService
    assistant: AssistantBridge


def create_workspace(namespace: str, db_path: str | None = None) -> Workspace:
    """Wire store → session → service → assistant for one namespace."""
    kv = KeyValueStore(namespace=namespace, db_path=db_path)
    session = SessionManager(UserStore(kv))
    service = UserService(session)
    assistant = AssistantBridge(session, service, ChatHistoryStore(kv))
    session.start()
    return Workspace(session=session, service=service, assistant=assistant)


def _workspace(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Workspace:
    workspaces: dict[int, Workspace] = context.bot_data.setdefault("workspaces", {})
    chat_id = update.effective_chat.id
    if chat_id not in workspaces:
        workspaces[chat_id] = create_workspace(f"chat-{chat_id}")
    return workspaces[chat_id]


async def _require_login(update: Update, ws: Workspace) -> bool:
    if ws.session.is_authenticated:
        return True
    await update.message.reply_text("Please /login or /signup first.")
    return False


def _pick(items: list, arg: str) -> Any | None:
    """Resolve a 1-based list position typed by the user."""
    try:
        index = int(arg) - 1
    except ValueError:
        return None
    return items[index] if 0 <= index < len(items) else None



async def _reply_invalid(update: Update, exc: ValidationError) -> None:
    await update.message.reply_text(f"Please check your input: {describe_errors(exc)}")


# ---------------------------------------------------------------------------
# Account commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    greeting = ws.assistant.messages[-1].content if ws.assistant.messages else ""
    await update.message.reply_text(f"{greeting}\n\n{_HELP_TEXT}".strip())


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(_HELP_TEXT)


@authorized_only
async def cmd_signup(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) < 3:
        await update.message.reply_text("Usage: /signup <name> <email> <password>")
        return

    *name_parts, email, password = args
    try:
        form = SignupForm(name=" ".join(name_parts), email=email, password=password)
    except ValidationError as exc:
        await _reply_invalid(update, exc)
        return

    ws = _workspace(update, context)
    if not ws.session.signup(form.name, form.email, form.password):
        await update.message.reply_text("An account with that email already exists. Try /login.")
        return

    reply = f"Account created. Hi {ws.session.current.display_name}!"
    if ws.session.consume_onboarding():
        reply += "\n\n" + _ONBOARDING_TEXT
    await update.message.reply_text(reply)


@authorized_only
async def cmd_login(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) != 2:
        await update.message.reply_text("Usage: /login <email> <password>")
        return

    try:
        form = LoginForm(email=args[0], password=args[1])
    except ValidationError as exc:
        await _reply_invalid(update, exc)
        return

    ws = _workspace(update, context)
    if ws.session.login(form.email, form.password):
        await update.message.reply_text(f"Welcome back, {ws.session.current.display_name}!")
    else:
        await update.message.reply_text("Invalid email or password.")


@authorized_only
async def cmd_logout(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    ws.session.logout()
    await update.message.reply_text("You have been successfully logged out.")


@authorized_only
async def cmd_me(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    user = ws.session.current
    await update.message.reply_text(
        f"{user.display_name} <{user.identifier}>\n"
        f"Location: {user.location_label or '—'}\n"
        f"Working hours: {user.work_window.label()}\n"
        f"Off days: {weekday_names(user.rest_days) or '—'}"
    )


_SETTINGS_USAGE = (
    "Usage: /settings <field> <value>\n"
    "  name <your name>\n"
    "  location <city, country>\n"
    "  hours <HH:MM-HH:MM>\n"
    "  offdays <days, e.g. sat sun or 6 0; none for no days off>"
)


def _parse_rest_days(tokens: list[str]) -> list[int] | None:
    """Day names (or 3-letter prefixes) and weekday numbers → indices. None on an unknown word."""
    days = []
    for token in " ".join(tokens).replace(",", " ").split():
        word = token.lower()
        if word == "none":
            continue
        if word.lstrip("-").isdigit():
            days.append(int(word))
            continue
        match = next((i for i, name in enumerate(WEEKDAY_NAMES) if name.lower().startswith(word[:3])), None)
        if match is None or len(word) < 3:
            return None
        days.append(match)
    return days


def _settings_changes(field: str, values: list[str]) -> dict | None:
    value = " ".join(values)
    if field == "name":
        return {"display_name": value}
    if field == "location":
        return {"location_label": value}
    if field == "hours":
        start, sep, end = value.replace(" ", "").partition("-")
        return {"work_window": {"start": start, "end": end}} if sep else None
    if field == "offdays":
        days = _parse_rest_days(values)
        return {"rest_days": days} if days is not None and values else None
    return None


@authorized_only
async def cmd_settings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return

    args = context.args or []
    changes = _settings_changes(args[0].lower(), args[1:]) if args else None
    if changes is None:
        user = ws.session.current
        await update.message.reply_text(
            f"{_SETTINGS_USAGE}\n\n"
            f"Now: {user.display_name} · {user.location_label or '—'} · "
            f"{user.work_window.label()} · off {weekday_names(user.rest_days) or '—'}"
        )
        return

    result = ws.service.update_profile(changes)
    if result.ok:
        await update.message.reply_text("Your settings have been updated.")
    elif result.status is MutationStatus.INVALID:
        await update.message.reply_text(f"Please check your input: {result.message}")
    else:
        await update.message.reply_text(f"Couldn't update your settings ({result.status.value}).")


def _avatar_api_key() -> str:
    if settings.AVATAR_API_KEY:
        return settings.AVATAR_API_KEY
    return settings.LLM_API_KEY if settings.LLM_PROVIDER == "gemini" else ""


@authorized_only
async def cmd_avatar(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return

    description = " ".join(context.args or [])
    if not description:
        await update.message.reply_text("Usage: /avatar <short description of yourself>")
        return

    await update.effective_chat.send_action("upload_photo")
    uri = await generate_avatar(description, _avatar_api_key())
    image = decode_data_uri(uri) if uri else None
    if image is None:
        await update.message.reply_text("Sorry, I couldn't generate an avatar right now.")
        return

    result = ws.service.update_profile({"avatar_reference": uri})
    if not result.ok:
        await update.message.reply_text(f"Couldn't save your avatar ({result.status.value}).")
        return
    await update.message.reply_photo(photo=image, caption="Your new avatar.")


# ---------------------------------------------------------------------------
# Contacts & meetings
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_contacts(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    contacts = ws.session.current.contacts
    if not contacts:
        await update.message.reply_text("No contacts yet. Use /addcontact or just ask me.")
        return
    lines = [
        f"{i}. {c.name} <{c.email}>" + (f" · {c.phone}" if c.phone else "")
        for i, c in enumerate(contacts, start=1)
    ]
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_addcontact(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    email_pos = next((i for i, a in enumerate(args) if "@" in a), None)
    if not email_pos:
        await update.message.reply_text("Usage: /addcontact <name> <email> [phone]")
        return

    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    try:
        form = ContactForm(
            name=" ".join(args[:email_pos]),
            email=args[email_pos],
            number=" ".join(args[email_pos + 1:]),
        )
    except ValidationError as exc:
        await _reply_invalid(update, exc)
        return

    result = ws.service.add_contact(form.name, form.email, phone=form.number)
    if result.ok:
        await update.message.reply_text(f"{result.entity.name} has been added to your contacts.")
    else:
        await update.message.reply_text(f"Couldn't add the contact ({result.status.value}).")


# Field typed by the user -> Contact attribute
_CONTACT_FIELDS = {"name": "name", "email": "email", "phone": "phone", "note": "description"}


@authorized_only
async def cmd_editcontact(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return

    contact = _pick(ws.session.current.contacts, args[0]) if args else None
    field = args[1].lower() if len(args) > 1 else ""
    if contact is None or field not in _CONTACT_FIELDS:
        await update.message.reply_text(
            "Usage: /editcontact <number from /contacts> <name|email|phone|note> <value>"
        )
        return

    edited = replace(contact, **{_CONTACT_FIELDS[field]: " ".join(args[2:])})
    try:
        form = ContactForm(
            name=edited.name, email=edited.email,
            number=edited.phone, description=edited.description,
        )
    except ValidationError as exc:
        await _reply_invalid(update, exc)
        return

    result = ws.service.update_contact(
        replace(edited, name=form.name, email=form.email, phone=form.number, description=form.description)
    )
    if result.ok:
        await update.message.reply_text(f"Updated {form.name}.")
    else:
        await update.message.reply_text("That contact no longer exists.")


@authorized_only
async def cmd_deletecontact(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    contact = _pick(ws.session.current.contacts, (context.args or [""])[0])
    if contact is None:
        await update.message.reply_text("Usage: /deletecontact <number from /contacts>")
        return
    result = ws.service.delete_contact(contact.id)
    if result.status is MutationStatus.OK:
        await update.message.reply_text(f"Deleted {contact.name}.")
    else:
        await update.message.reply_text("That contact no longer exists.")


@authorized_only
async def cmd_meetings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    user = ws.session.current
    if not user.meetings:
        await update.message.reply_text("No meetings scheduled.")
        return

    tz = ZoneInfo(settings.TIMEZONE)
    lines = []
    for i, meeting in enumerate(user.meetings, start=1):
        line = f"{i}. {meeting.title} — {format_meeting_time(meeting.date, tz)}"
        people = resolve_participants(user, meeting)
        if people:
            line += "\n   with " + ", ".join(p.name for p in people)
        lines.append(line)
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_deletemeeting(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    meeting = _pick(ws.session.current.meetings, (context.args or [""])[0])
    if meeting is None:
        await update.message.reply_text("Usage: /deletemeeting <number from /meetings>")
        return
    result = ws.service.delete_meeting(meeting.id)
    if result.ok:
        await update.message.reply_text(f"Deleted \"{meeting.title}\".")
    else:
        await update.message.reply_text("That meeting no longer exists.")


@authorized_only
async def cmd_weather(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    location = ws.session.current.location_label
    weather = await get_current_weather(location, settings.WEATHERAPI_KEY)
    if weather is None:
        await update.message.reply_text(f"Sorry, I couldn't get the weather for {location}.")
        return
    await update.message.reply_text(
        f"{weather.location}: {weather.condition}, {weather.temp_c}°C "
        f"(feels like {weather.feelslike_c}°C), humidity {weather.humidity}%, "
        f"wind {weather.wind_kph} km/h"
    )


@authorized_only
async def cmd_forecast(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    if not await _require_login(update, ws):
        return
    location = ws.session.current.location_label
    days = await forecast_days(location, settings.WEATHERAPI_KEY)
    if not days:
        await update.message.reply_text(f"Sorry, I couldn't get the forecast for {location}.")
        return
    lines = [f"Forecast for {location}:"] + [
        f"{d.date}: {d.condition}, {d.min_temp_c}–{d.max_temp_c}°C, "
        f"wind {d.max_wind_kph} km/h, humidity {d.avg_humidity}%"
        for d in days
    ]
    await update.message.reply_text("\n".join(lines))


# ---------------------------------------------------------------------------
# Free text → assistant
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ws = _workspace(update, context)
    await update.effective_chat.send_action("typing")
    reply = await ws.assistant.handle_instruction(update.message.text or "")
    if reply:
        await update.message.reply_text(reply)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def build_app() -> Application:
    """Build the Telegram application with all handlers registered."""
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()
    app.bot_data["workspaces"] = {}

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("signup", cmd_signup))
    app.add_handler(CommandHandler("login", cmd_login))
    app.add_handler(CommandHandler("logout", cmd_logout))
    app.add_handler(CommandHandler("me", cmd_me))
    app.add_handler(CommandHandler("settings", cmd_settings))
    app.add_handler(CommandHandler("avatar", cmd_avatar))
    app.add_handler(CommandHandler("contacts", cmd_contacts))
    app.add_handler(CommandHandler("addcontact", cmd_addcontact))
    app.add_handler(CommandHandler("editcontact", cmd_editcontact))
    app.add_handler(CommandHandler("deletecontact", cmd_deletecontact))
    app.add_handler(CommandHandler("meetings", cmd_meetings))
    app.add_handler(CommandHandler("deletemeeting", cmd_deletemeeting))
    app.add_handler(CommandHandler("weather", cmd_weather))
    app.add_handler(CommandHandler("forecast", cmd_forecast))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting MeetAI Assistant bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()

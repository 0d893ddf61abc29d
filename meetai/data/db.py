"""
MeetAI Assistant — Key/Value Storage.

A namespaced string key/value area in SQLite plays the
role of a browser's local storage. One namespace per chat; inside it the
whole user map lives under a single key, next to a separate key holding who
is logged in right now.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from meetai.data.models import ChatMessage, UserAggregate
from meetai.data.serialization import (
    chat_from_list,
    chat_to_list,
    users_from_dict,
    users_to_dict,
)

logger = logging.getLogger(__name__)

USERS_KEY = "meetai_all_users_data"
CURRENT_USER_KEY = "meetai_current_user_email"
CHAT_HISTORY_KEY_PREFIX = "chatHistory_"


class KeyValueStore:
    """SQLite-backed string key/value area scoped to one namespace."""

    def __init__(self, namespace: str = "default", db_path: str | None = None) -> None:
        if db_path is None:
            from meetai.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._namespace = namespace
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_items (
                    namespace  TEXT NOT NULL,
                    key        TEXT NOT NULL,
                    value      TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
        logger.debug("Key/value table initialized at %s", self._db_path)

    def get_item(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            ).fetchone()
        if row is None:
            return None
        return row["value"]

    def set_item(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_items (namespace, key, value) VALUES (?, ?, ?)
                ON CONFLICT (namespace, key) DO UPDATE SET value = excluded.value
                """,
                (self._namespace, key, value),
            )

    def remove_item(self, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            )
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_items WHERE namespace = ? ORDER BY key",
                (self._namespace,),
            ).fetchall()
        return [r["key"] for r in rows]

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_items WHERE namespace = ?", (self._namespace,))
        logger.info("Cleared key/value namespace '%s'", self._namespace)


class UserStore:
    """Durable copy of every user aggregate created in one namespace.

    All methods fail soft: storage and JSON errors are logged, never raised.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def load(self) -> dict[str, UserAggregate]:
        """Return the stored user map, or {} when missing or unreadable."""
        try:
            raw = self._kv.get_item(USERS_KEY)
        except sqlite3.Error as exc:
            logger.error("Failed to read user data: %s", exc)
            return {}
        if not raw:
            return {}

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                logger.warning("Stored user data is not a mapping, ignoring it")
                return {}
            return users_from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Failed to parse stored user data: %s", exc)
            return {}

    def save(self, users: dict[str, UserAggregate]) -> bool:
        """Write the whole user map as one blob. Returns False on failure."""
        try:
            blob = json.dumps(users_to_dict(users))
            self._kv.set_item(USERS_KEY, blob)
        except (sqlite3.Error, TypeError, ValueError, AttributeError) as exc:
            logger.error("Failed to save user data: %s", exc)
            return False
        logger.debug("Saved %d user(s) to namespace '%s'", len(users), self._kv.namespace)
        return True

    def remember_current_identifier(self, identifier: str | None) -> None:
        """Store (or clear, with None) the identifier of the logged-in user."""
        try:
            if identifier:
                self._kv.set_item(CURRENT_USER_KEY, identifier)
            else:
                self._kv.remove_item(CURRENT_USER_KEY)
        except sqlite3.Error as exc:
            logger.error("Failed to remember current user: %s", exc)

    def current_identifier(self) -> str | None:
        try:
            return self._kv.get_item(CURRENT_USER_KEY) or None
        except sqlite3.Error as exc:
            logger.error("Failed to read current user: %s", exc)
            return None

    def clear(self) -> None:
        """Forget every stored user and the current identifier."""
        try:
            self._kv.remove_item(USERS_KEY)
            self._kv.remove_item(CURRENT_USER_KEY)
        except sqlite3.Error as exc:
            logger.error("Failed to clear user data: %s", exc)


class ChatHistoryStore:
    """Per-user chat transcripts, one key per identifier."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    @staticmethod
    def _key(identifier: str) -> str:
        return f"{CHAT_HISTORY_KEY_PREFIX}{identifier}"

    def load(self, identifier: str) -> list[ChatMessage]:
        try:
            raw = self._kv.get_item(self._key(identifier))
            if not raw:
                return []
            data = json.loads(raw)
            return chat_from_list(data) if isinstance(data, list) else []
        except (sqlite3.Error, json.JSONDecodeError) as exc:
            logger.error("Failed to load chat history for %s: %s", identifier, exc)
            return []

    def save(self, identifier: str, messages: list[ChatMessage]) -> bool:
        try:
            self._kv.set_item(self._key(identifier), json.dumps(chat_to_list(messages)))
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Failed to save chat history for %s: %s", identifier, exc)
            return False
        return True

"""Shared test fixtures and configuration.

Sets up fake environment variables so meetai.config doesn't sys.exit(),
and provides common fixtures like a temp key/value store and a started session.
"""

import os

# Patch env vars BEFORE any meetai imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("WEATHERAPI_KEY", "")
os.environ.setdefault("AVATAR_API_KEY", "")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_meetai.db")


@pytest.fixture
def kv(tmp_db_path):
    """Return a KeyValueStore backed by a temp file."""
    from meetai.data.db import KeyValueStore
    return KeyValueStore(namespace="test", db_path=tmp_db_path)


@pytest.fixture
def user_store(kv):
    from meetai.data.db import UserStore
    return UserStore(kv)


@pytest.fixture
def history_store(kv):
    from meetai.data.db import ChatHistoryStore
    return ChatHistoryStore(kv)


@pytest.fixture
def session(user_store):
    """Return a started SessionManager over an empty store (Guest)."""
    from meetai.core.session import SessionManager
    manager = SessionManager(user_store)
    manager.start()
    return manager


@pytest.fixture
def service(session):
    from meetai.core.user_service import UserService
    return UserService(session)


@pytest.fixture
def alex(session):
    """Session with Alex signed up and logged in."""
    assert session.signup("Alex", "alex@x.com", "pw")
    return session

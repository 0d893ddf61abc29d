"""
MeetAI Assistant — Session Manager.

Owns which user is "current" in one storage namespace. Loads the stored user
map once at start, then serves login / signup / logout synchronously over the
in-memory copy, writing through to the UserStore on every change.

State machine: UNINITIALIZED → LOADING → {GUEST, AUTHENTICATED}.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable

import bcrypt

from meetai.data.db import UserStore
from meetai.data.models import UserAggregate, WorkWindow, make_guest

logger = logging.getLogger(__name__)

Listener = Callable[[UserAggregate], None]

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


def hash_secret(secret: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of ``secret``."""
    if rounds is None:
        from meetai.config import settings
        rounds = settings.BCRYPT_ROUNDS
    password = secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_secret(secret: str, hashed: str) -> bool:
    """Check ``secret`` against a stored bcrypt hash. Bad hashes never match."""
    if not hashed:
        return False
    password = secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password, hashed.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        logger.warning("Stored credential is not a valid bcrypt hash")
        return False


class SessionManager:
    """Tracks the current user and keeps it in sync with the UserStore."""

    def __init__(self, store: UserStore) -> None:
        self._store = store
        self._state = SessionState.UNINITIALIZED
        self._users: dict[str, UserAggregate] = {}
        self._current: UserAggregate = make_guest()
        self._show_onboarding = False
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current(self) -> UserAggregate:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current.authenticated

    def has_user(self, identifier: str) -> bool:
        return identifier in self._users

    def stored_user(self, identifier: str) -> UserAggregate | None:
        """Return the persisted copy for ``identifier`` (not marked authenticated)."""
        return self._users.get(identifier)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for current-user changes.

        Returns a callable that unsubscribes it.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._current)
            except Exception as exc:
                logger.error("Session listener %r failed: %s", listener, exc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> SessionState:
        """Load stored users and restore the remembered login, once."""
        if self._state is not SessionState.UNINITIALIZED:
            return self._state

        self._state = SessionState.LOADING
        self._users = self._store.load()
        identifier = self._store.current_identifier()

        stored = self._users.get(identifier) if identifier else None
        if stored is None:
            if identifier:
                logger.warning("Remembered user %s not found in store", identifier)
            self._current = make_guest()
            self._state = SessionState.GUEST
        else:
            self._current = replace(stored, authenticated=True)
            self._state = SessionState.AUTHENTICATED
            logger.info("Session restored for %s", identifier)

        logger.info("Session started with %d stored user(s)", len(self._users))
        self._notify()
        return self._state

    def _ensure_started(self) -> None:
        if self._state is SessionState.UNINITIALIZED:
            self.start()

    def _activate(self, user: UserAggregate) -> None:
        self._current = replace(user, authenticated=True)
        self._state = SessionState.AUTHENTICATED
        self._store.remember_current_identifier(user.identifier)
        self._notify()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def login(self, identifier: str, secret: str) -> bool:
        """Log in as ``identifier``. False (and no change) on a bad identifier or secret."""
        self._ensure_started()
        identifier = identifier.strip()

        stored = self._users.get(identifier)
        if stored is None:
            logger.warning("Login failed: unknown user %s", identifier)
            return False
        if not verify_secret(secret, stored.secret):
            logger.warning("Login failed: wrong secret for %s", identifier)
            return False

        self._activate(stored)
        logger.info("User %s logged in", identifier)
        return True

    def signup(self, display_name: str, identifier: str, secret: str) -> bool:
        """Create a new account and log into it.

        False if ``identifier`` is taken or either name is blank.
        """
        from meetai.config import settings

        self._ensure_started()
        identifier = identifier.strip()
        display_name = display_name.strip()

        if not identifier or not display_name:
            logger.warning("Signup rejected: blank identifier or display name")
            return False
        if identifier in self._users:
            logger.warning("Signup rejected: %s already exists", identifier)
            return False

        user = UserAggregate(
            identifier=identifier,
            display_name=display_name,
            secret=hash_secret(secret),
            location_label=settings.DEFAULT_LOCATION,
            work_window=WorkWindow(settings.DEFAULT_WORK_START, settings.DEFAULT_WORK_END),
            rest_days=[0, 6],
        )
        self._users[identifier] = user
        self._store.save(self._users)
        self._show_onboarding = True

        self._activate(user)
        logger.info("User %s signed up", identifier)
        return True

    def logout(self) -> None:
        """Drop back to the Guest aggregate; stored users stay as they are."""
        self._ensure_started()
        previous = self._current.identifier
        self._store.remember_current_identifier(None)
        self._current = make_guest()
        self._state = SessionState.GUEST
        self._show_onboarding = False
        if previous:
            logger.info("User %s logged out", previous)
        self._notify()

    def consume_onboarding(self) -> bool:
        """Return True once after a signup, then False until the next signup."""
        shown = self._show_onboarding
        self._show_onboarding = False
        return shown

    # ------------------------------------------------------------------
    # Write-through
    # ------------------------------------------------------------------

    def commit(self, user: UserAggregate) -> bool:
        """Make ``user`` current and persist it in the same step.

        Only the authenticated user may be committed. Returns the result of
        the store write; the in-memory copy is updated either way.
        """
        if not self._current.authenticated or user.identifier != self._current.identifier:
            logger.warning("Refusing to commit aggregate for %s", user.identifier or "guest")
            return False

        self._current = replace(user, authenticated=True)
        self._users[user.identifier] = replace(user, authenticated=False)
        saved = self._store.save(self._users)
        self._notify()
        return saved

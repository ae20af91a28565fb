"""
Local authentication provider and client-side token store.

The idle-session monitor only depends on the ``AuthProvider`` protocol;
``LocalAuthProvider`` is the implementation the Gradio app runs with.
"""

import hmac
import secrets
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from core.log import get_logger

logger = get_logger("auth")

UserListener = Callable[["User | None"], None]


@dataclass(frozen=True)
class User:
    id: str
    email: str


class AuthProvider(Protocol):
    def get_current_user(self) -> User | None: ...

    def sign_out(self) -> None: ...

    def subscribe(self, listener: UserListener) -> Callable[[], None]: ...


class TokenStore:
    """Thread-safe key/value store for session tokens (the app's local storage)."""

    def __init__(self):
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._items


class LocalAuthProvider:
    """Email/password auth against a configured credential map."""

    def __init__(self, credentials: dict[str, str], token_store: TokenStore, token_key: str = "assetfolio-auth-token"):
        self._credentials = {email.strip().lower(): password for email, password in credentials.items()}
        self._token_store = token_store
        self._token_key = token_key
        self._user: User | None = None
        self._listeners: set[UserListener] = set()
        self._lock = threading.Lock()

    def get_current_user(self) -> User | None:
        return self._user

    def subscribe(self, listener: UserListener) -> Callable[[], None]:
        """Register a user-change listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.add(listener)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.discard(listener)

        return unsubscribe

    def authenticate(self, username: str, password: str) -> bool:
        """Gradio ``auth=`` callback."""
        return self.sign_in(username, password) is not None

    def sign_in(self, email: str, password: str) -> User | None:
        key = (email or "").strip().lower()
        expected = self._credentials.get(key)
        if expected is None or not hmac.compare_digest(expected.encode(), (password or "").encode()):
            logger.warning(f"Failed sign-in attempt for {key!r}")
            return None

        user = User(id=key, email=key)
        self._token_store.set(self._token_key, secrets.token_urlsafe(32))
        logger.info(f"User signed in: {user.email}")
        self._set_user(user)
        return user

    def sign_out(self) -> None:
        if self._user is None:
            return
        logger.info(f"User signed out: {self._user.email}")
        self._token_store.remove(self._token_key)
        self._set_user(None)

    def force_sign_out(self) -> None:
        """Drop the session directly; listener failures are logged and skipped."""
        self._token_store.remove(self._token_key)
        self._user = None
        for listener in self._snapshot_listeners():
            try:
                listener(None)
            except Exception as e:
                logger.error(f"Auth listener failed during forced sign-out: {e}", exc_info=True)

    def _snapshot_listeners(self) -> list[UserListener]:
        with self._lock:
            return list(self._listeners)

    def _set_user(self, user: User | None) -> None:
        self._user = user
        for listener in self._snapshot_listeners():
            listener(user)

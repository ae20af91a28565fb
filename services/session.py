"""
Idle-session monitor.

Logs the current user out after a period without qualifying interaction.
The host environment feeds the monitor discrete interaction events
("pointerdown", "keydown", ...) and tab-visibility transitions through an
``ActivityEventSource``; time comes from an injected clock and timers from
an injected ``Scheduler``, so the state machine runs the same under a fake
clock in tests and under ``threading.Timer`` in the app.

States:
    INACTIVE     no session, no timer, no listeners
    ACTIVE       session running, idle timer pending
    IDLE         tab hidden, idle timer still pending
    LOGGING_OUT  logout sequence running; everything else is ignored
"""

import threading
import time
from enum import Enum
from typing import Callable, Iterable, Protocol

from core.auth import AuthProvider, TokenStore, User
from core.errors import SignOutFailed
from core.log import get_logger

logger = get_logger("idle_session")

STRICT_ACTIVITY_EVENTS = ("pointerdown", "keydown", "touchstart")
LOOSE_ACTIVITY_EVENTS = STRICT_ACTIVITY_EVENTS + ("mousemove", "scroll")


class SessionState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    IDLE = "idle"
    LOGGING_OUT = "logging_out"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadTimerScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay, 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer


class ActivityEventSource(Protocol):
    def subscribe_interactions(self, listener: Callable[[str], None]) -> Callable[[], None]: ...

    def subscribe_visibility(self, listener: Callable[[bool], None]) -> Callable[[], None]: ...


class LocalActivityEvents:
    """In-process event source; the UI layer emits into it."""

    def __init__(self):
        self._interaction_listeners: set[Callable[[str], None]] = set()
        self._visibility_listeners: set[Callable[[bool], None]] = set()
        self._lock = threading.Lock()

    def subscribe_interactions(self, listener: Callable[[str], None]) -> Callable[[], None]:
        with self._lock:
            self._interaction_listeners.add(listener)
        return lambda: self._discard(self._interaction_listeners, listener)

    def subscribe_visibility(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        with self._lock:
            self._visibility_listeners.add(listener)
        return lambda: self._discard(self._visibility_listeners, listener)

    def _discard(self, listeners: set, listener) -> None:
        with self._lock:
            listeners.discard(listener)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._interaction_listeners) + len(self._visibility_listeners)

    def emit_interaction(self, name: str) -> None:
        with self._lock:
            listeners = list(self._interaction_listeners)
        for listener in listeners:
            listener(name)

    def emit_visibility(self, visible: bool) -> None:
        with self._lock:
            listeners = list(self._visibility_listeners)
        for listener in listeners:
            listener(visible)


class IdleSessionMonitor:
    """Auto-logout for exactly one authenticated user at a time."""

    def __init__(
        self,
        auth: AuthProvider,
        events: ActivityEventSource,
        *,
        idle_timeout: float = 30 * 60,
        qualifying_events: Iterable[str] = STRICT_ACTIVITY_EVENTS,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler | None = None,
        fallback_sign_out: Callable[[], None] | None = None,
        token_store: TokenStore | None = None,
        token_keys: Iterable[str] = (),
        navigate: Callable[[str], None] | None = None,
        login_path: str = "/login",
    ):
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        self.auth = auth
        self.events = events
        self.idle_timeout = idle_timeout
        self.qualifying_events = frozenset(qualifying_events)
        self._clock = clock
        self._scheduler = scheduler or ThreadTimerScheduler()
        self._fallback_sign_out = fallback_sign_out
        self._token_store = token_store
        self._token_keys = tuple(token_keys)
        self._navigate = navigate
        self.login_path = login_path

        self._lock = threading.RLock()
        self._state = SessionState.INACTIVE
        self._user: User | None = None
        self._timer: TimerHandle | None = None
        self._timer_generation = 0
        self._unsubscribers: list[Callable[[], None]] = []
        self._auth_unsubscribe: Callable[[], None] | None = None

        self.last_activity_at: float | None = None
        self.is_logging_out = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> User | None:
        return self._user

    def idle_for(self) -> float:
        if self.last_activity_at is None:
            return 0.0
        return self._clock() - self.last_activity_at

    # ============== AUTH BINDING ==============

    def bind(self) -> None:
        """Follow the auth provider: start on sign-in, stop on sign-out."""
        with self._lock:
            if self._auth_unsubscribe is None:
                self._auth_unsubscribe = self.auth.subscribe(self._on_user_changed)
        user = self.auth.get_current_user()
        if user is not None:
            self.start(user)

    def unbind(self) -> None:
        """Detach from the auth provider and tear the session down (unmount)."""
        with self._lock:
            if self._auth_unsubscribe is not None:
                self._auth_unsubscribe()
                self._auth_unsubscribe = None
        self.stop()

    def _on_user_changed(self, user: User | None) -> None:
        if user is None:
            self.stop()
            return
        if self._user is not None and self._user != user:
            self.stop()
        self.start(user)

    # ============== LIFECYCLE ==============

    def start(self, user: User | None = None) -> None:
        """INACTIVE -> ACTIVE. No-op while a session is already being tracked."""
        with self._lock:
            if self._state != SessionState.INACTIVE:
                return
            self.is_logging_out = False
            self._user = user
            self._unsubscribers = [
                self.events.subscribe_interactions(self.handle_event),
                self.events.subscribe_visibility(self.handle_visibility_change),
            ]
            self.last_activity_at = self._clock()
            self._state = SessionState.ACTIVE
            self._schedule(self.idle_timeout)
        who = user.email if user else "current user"
        logger.info(f"Auto-logout armed for {who} with {self.idle_timeout:.0f}s timeout")

    def stop(self) -> None:
        """Cancel the timer and detach listeners."""
        with self._lock:
            was_running = self._state != SessionState.INACTIVE
            self._detach_locked()
            self._state = SessionState.INACTIVE
            self._user = None
        if was_running:
            logger.info("Auto-logout stopped")

    def _detach_locked(self) -> None:
        self._cancel_timer_locked()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ============== TIMER ==============

    def _schedule(self, delay: float) -> None:
        self._cancel_timer_locked()
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.call_later(delay, lambda: self._on_timer(generation))

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A superseded timer that fired anyway
            if generation != self._timer_generation:
                return
            if self.is_logging_out or self._state in (SessionState.INACTIVE, SessionState.LOGGING_OUT):
                return
            self._timer = None
            idle_for = self._clock() - self.last_activity_at
            if idle_for < self.idle_timeout:
                self._schedule(self.idle_timeout - idle_for)
                return
        logger.info(f"Idle timeout reached after {idle_for:.0f}s")
        self.perform_logout(idle_check=True)

    # ============== EVENTS ==============

    def handle_event(self, name: str) -> None:
        """Record a qualifying interaction and push the deadline out."""
        if name not in self.qualifying_events:
            return
        with self._lock:
            if self.is_logging_out or self._state in (SessionState.INACTIVE, SessionState.LOGGING_OUT):
                return
            self.last_activity_at = self._clock()
            self._state = SessionState.ACTIVE
            self._schedule(self.idle_timeout)

    def handle_visibility_change(self, visible: bool) -> None:
        """Hidden: keep the timer. Visible: log out if the budget ran out while hidden."""
        with self._lock:
            if self.is_logging_out or self._state in (SessionState.INACTIVE, SessionState.LOGGING_OUT):
                return
            if not visible:
                self._state = SessionState.IDLE
                return
            idle_for = self._clock() - self.last_activity_at
            if idle_for < self.idle_timeout:
                self._state = SessionState.ACTIVE
                self._schedule(self.idle_timeout - idle_for)
                return
        logger.info(f"Idle timeout exceeded while tab was hidden ({idle_for:.0f}s)")
        self.perform_logout(idle_check=True)

    # ============== LOGOUT ==============

    def perform_logout(self, *, idle_check: bool = False) -> None:
        """
        Log the user out. Runs at most once per session and never raises.

        With ``idle_check`` the idle budget is re-checked under the lock first,
        so activity recorded after the timeout was noticed cancels the logout.

        Tries the auth provider's sign-out, then the fallback path. Tokens are
        cleared and the login page is requested whatever happened before.
        """
        with self._lock:
            if self.is_logging_out or self._state == SessionState.INACTIVE:
                logger.debug("Logout already in progress or no session, skipping")
                return
            if idle_check and self.last_activity_at is not None:
                idle_for = self._clock() - self.last_activity_at
                if idle_for < self.idle_timeout:
                    logger.debug("Activity arrived before logout, keeping session")
                    if self._timer is None:
                        self._schedule(self.idle_timeout - idle_for)
                    return
            self.is_logging_out = True
            self._state = SessionState.LOGGING_OUT
            self._detach_locked()

        logger.info("Starting logout")
        forced = False
        try:
            self._sign_out()
        except SignOutFailed as e:
            logger.error(f"Sign-out failed on every path: {e}")
            forced = True
        finally:
            self._clear_tokens()
            target = f"{self.login_path}?forcedLogout=true" if forced else self.login_path
            self._redirect(target)
            with self._lock:
                self._state = SessionState.INACTIVE
                self._user = None

    def _sign_out(self) -> None:
        try:
            self.auth.sign_out()
            logger.info("Signed out through auth provider")
            return
        except Exception as e:
            logger.warning(f"Auth provider sign-out failed, trying fallback: {e}", exc_info=True)
            primary_error = e

        if self._fallback_sign_out is None:
            raise SignOutFailed(f"No fallback sign-out configured (primary error: {primary_error})") from primary_error
        try:
            self._fallback_sign_out()
            logger.info("Signed out through fallback path")
        except Exception as e:
            raise SignOutFailed(f"Fallback sign-out failed: {e}") from e

    def _clear_tokens(self) -> None:
        if self._token_store is None or not self._token_keys:
            return
        try:
            self._token_store.clear(self._token_keys)
        except Exception as e:
            logger.error(f"Could not clear auth tokens: {e}", exc_info=True)

    def _redirect(self, target: str) -> None:
        if self._navigate is None:
            return
        try:
            self._navigate(target)
        except Exception as e:
            logger.error(f"Redirect to {target} failed: {e}", exc_info=True)

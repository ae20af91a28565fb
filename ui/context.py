"""
Application context: the singletons the Gradio app runs with.

Owns the auth provider, token store, activity event source, shared rate
cache and idle-session monitor, and wires them together once per process.
"""

import threading
from dataclasses import dataclass, field

from core.auth import LocalAuthProvider, TokenStore, User
from core.config import Settings, get_settings
from core.currency import Currency
from core.errors import RateFetchFailed
from core.log import get_logger
from services.rates import ExchangeRateCache, PinnedRates, init_rate_cache, teardown_rate_cache
from services.session import IdleSessionMonitor, LocalActivityEvents

logger = get_logger("context")


@dataclass
class AppContext:
    settings: Settings
    token_store: TokenStore
    auth: LocalAuthProvider
    events: LocalActivityEvents
    rates: ExchangeRateCache
    monitor: IdleSessionMonitor | None = None
    _redirect: str | None = None
    _redirect_lock: threading.Lock = field(default_factory=threading.Lock)

    def navigate(self, target: str) -> None:
        """Queue a page redirect; the UI picks it up on its next poll."""
        with self._redirect_lock:
            self._redirect = target
        logger.info(f"Redirect requested: {target}")

    def take_redirect(self) -> str | None:
        with self._redirect_lock:
            target, self._redirect = self._redirect, None
        return target

    @property
    def display_currency(self) -> Currency:
        return Currency.parse(self.settings.display_currency)

    def conversion_rates(self) -> PinnedRates:
        """Reload rates if they went stale, then pin one snapshot for a whole aggregate."""
        try:
            self.rates.ensure_rates_loaded()
        except RateFetchFailed as e:
            logger.warning(f"Exchange rates unavailable, showing unconverted values: {e}")
        return self.rates.pinned()

    def current_user(self) -> User | None:
        return self.auth.get_current_user()

    def record_activity(self, name: str = "pointerdown") -> None:
        self.events.emit_interaction(name)


_context: AppContext | None = None
_context_lock = threading.Lock()


def init_app_context(start_background: bool = True) -> AppContext:
    """
    Build and cache the AppContext. Idempotent.
    """
    global _context
    with _context_lock:
        if _context is not None:
            return _context

        settings = get_settings()
        token_store = TokenStore()
        auth = LocalAuthProvider(settings.auth_users, token_store, token_key=settings.auth_token_keys[0])
        events = LocalActivityEvents()
        rates = init_rate_cache()
        context = AppContext(settings=settings, token_store=token_store, auth=auth, events=events, rates=rates)
        context.monitor = IdleSessionMonitor(
            auth,
            events,
            idle_timeout=settings.idle_timeout_seconds,
            qualifying_events=settings.idle_activity_events,
            fallback_sign_out=auth.force_sign_out,
            token_store=token_store,
            token_keys=settings.auth_token_keys,
            navigate=context.navigate,
            login_path=settings.login_path,
        )
        context.monitor.bind()

        if start_background:
            rates.refresh_now()
            rates.start_background_refresh()

        if not settings.auth_users:
            logger.warning("No users configured (ASSETFOLIO_AUTH_USERS); nobody will be able to sign in")

        _context = context
        return _context


def get_app_context() -> AppContext:
    """
    Retrieve the cached AppContext.
    """
    if _context is None:
        raise RuntimeError("App context not initialized")
    return _context


def teardown_app_context() -> None:
    """Detach the idle monitor and stop background rate refresh."""
    global _context
    with _context_lock:
        if _context is None:
            return
        if _context.monitor is not None:
            _context.monitor.unbind()
        teardown_rate_cache()
        _context = None

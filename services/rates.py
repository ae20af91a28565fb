"""
Exchange-rate cache and currency converter.

One ``ExchangeRateCache`` is shared by every consumer in the process. It keeps
a single immutable ``RateSnapshot`` and at most one fetch in flight; callers
that arrive while a fetch is running wait on the same future instead of
issuing their own requests.

Conversion is synchronous and only uses a snapshot younger than the TTL.
Consumers that need a total no matter what use ``convert_many`` in its
default non-strict mode, which falls back to the raw (unconverted) sum and
leaves ``is_degraded`` set so the UI can say so.
"""

import threading
import time
from concurrent.futures import Future
from typing import Callable, Iterable

import pandas as pd

from adapters.exchange_rates import ExchangeRateClient
from core.config import get_settings
from core.currency import (
    BASE_CURRENCY,
    Currency,
    MoneyAmount,
    RateSnapshot,
    as_money,
    non_base_currencies,
    raw_sum,
)
from core.errors import RateFetchFailed, RatesUnavailable
from core.log import get_logger

logger = get_logger("rates")

# Background refresh runs at this fraction of the TTL so the cache is re-warmed before it goes stale
REFRESH_LEAD_FACTOR = 0.8


class PinnedRates:
    """
    Conversions against a single snapshot read.

    Aggregates take one of these so every amount in a total uses the same
    rates, and ``is_degraded`` describes exactly the rates that were used.
    """

    def __init__(self, snapshot: RateSnapshot | None, base: Currency = BASE_CURRENCY):
        self.snapshot = snapshot
        self.base = base

    @property
    def is_degraded(self) -> bool:
        return self.snapshot is None

    def pinned(self) -> "PinnedRates":
        return self

    def convert(self, amount: float, from_currency: Currency | str, to_currency: Currency | str | None = None) -> float:
        """
        Raises:
            RatesUnavailable: no snapshot was loaded when this view was taken.
        """
        from_c = Currency.parse(from_currency)
        to_c = Currency.parse(to_currency) if to_currency is not None else self.base
        if from_c == to_c:
            return amount
        if self.snapshot is None:
            raise RatesUnavailable("Exchange rates not available. Load rates first.")
        return self.snapshot.convert(amount, from_c, to_c)

    def convert_or_identity(self, amount: float, currency: Currency | str, target: Currency | str | None = None) -> float:
        try:
            return self.convert(amount, currency, target)
        except RatesUnavailable:
            return amount

    def convert_many(self, entries: Iterable, target: Currency | str | None = None, *, strict: bool = False) -> float:
        money: list[MoneyAmount] = [as_money(entry) for entry in entries]
        try:
            return sum(self.convert(m.amount, m.currency, target) for m in money)
        except RatesUnavailable:
            if strict:
                raise
            logger.debug(f"Rates unavailable, summing {len(money)} raw amounts")
            return raw_sum(money)


class ExchangeRateCache:
    """Process-wide rate cache with single-flight loading."""

    def __init__(
        self,
        client: ExchangeRateClient,
        *,
        clock: Callable[[], float] = time.monotonic,
        ttl: float = 300.0,
        base: Currency = BASE_CURRENCY,
        refresh_interval: float | None = None,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._client = client
        self._clock = clock
        self.ttl = ttl
        self.base = base
        self.refresh_interval = refresh_interval if refresh_interval is not None else ttl * REFRESH_LEAD_FACTOR

        self._lock = threading.Lock()
        self._snapshot: RateSnapshot | None = None
        self._in_flight: Future | None = None
        self._last_error: str | None = None
        self._sequence = 0

        self._stop_event = threading.Event()
        self._refresh_thread: threading.Thread | None = None

    # ============== STATE ==============

    @property
    def snapshot(self) -> RateSnapshot | None:
        return self._snapshot

    @property
    def is_loading(self) -> bool:
        return self._in_flight is not None

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def rates_available(self) -> bool:
        return self._fresh_snapshot() is not None

    @property
    def is_degraded(self) -> bool:
        return not self.rates_available

    def current_snapshot(self) -> RateSnapshot | None:
        """The loaded snapshot if it is still within the TTL, else None."""
        return self._fresh_snapshot()

    def _fresh_snapshot(self) -> RateSnapshot | None:
        snapshot = self._snapshot
        if snapshot is not None and snapshot.is_fresh(self._clock(), self.ttl):
            return snapshot
        return None

    # ============== LOADING ==============

    def ensure_rates_loaded(self, force: bool = False) -> RateSnapshot:
        """
        Make sure a fresh snapshot is loaded.

        Returns immediately when the current snapshot is fresh. Joins the fetch
        already in flight when there is one. ``force=True`` always starts a new
        fetch; the previous in-flight fetch is abandoned, not aborted.

        Returns:
            The newest installed snapshot.

        Raises:
            RateFetchFailed: if the fetch this call waited on failed.
        """
        with self._lock:
            if not force:
                snapshot = self._fresh_snapshot()
                if snapshot is not None:
                    return snapshot
            if not force and self._in_flight is not None:
                future = self._in_flight
                owner = False
            else:
                future = Future()
                self._in_flight = future
                self._sequence += 1
                sequence = self._sequence
                started_at = self._clock()
                owner = True

        if owner:
            self._fetch(future, started_at, sequence)
        return future.result()

    def _fetch(self, future: Future, started_at: float, sequence: int) -> None:
        logger.info(f"Fetching exchange rates against {self.base.value} (fetch #{sequence})")
        try:
            fetched = self._client.get_rates(self.base, non_base_currencies(self.base))
            snapshot = RateSnapshot.build(fetched, fetched_at=started_at, base=self.base, sequence=sequence)
        except Exception as e:
            if isinstance(e, RateFetchFailed):
                error = e
            else:
                error = RateFetchFailed(f"Unexpected error fetching rates: {e}")
                error.__cause__ = e
            self._fail(future, error, started_at, sequence)
            return

        with self._lock:
            if self._in_flight is future:
                self._in_flight = None
            if snapshot.is_newer_than(self._snapshot):
                self._snapshot = snapshot
                self._last_error = None
            else:
                logger.info(f"Discarding out-of-order rates from fetch #{sequence}")
            result = self._snapshot
        future.set_result(result)

    def _fail(self, future: Future, error: RateFetchFailed, started_at: float, sequence: int) -> None:
        logger.error(f"Exchange rate fetch #{sequence} failed: {error}")
        with self._lock:
            if self._in_flight is future:
                self._in_flight = None
            current = self._snapshot
            # A newer successful fetch stays in place
            if current is None or (started_at, sequence) > (current.fetched_at, current.sequence):
                self._snapshot = None
                self._last_error = str(error)
        future.set_exception(error)

    def refresh_now(self) -> bool:
        """Force a fetch and swallow the failure (it is recorded in ``last_error``)."""
        try:
            self.ensure_rates_loaded(force=True)
            return True
        except RateFetchFailed as e:
            logger.warning(f"Background rate refresh failed: {e}")
            return False

    # ============== CONVERSION ==============

    def pinned(self) -> PinnedRates:
        """Read the current snapshot once and return a converter bound to it."""
        return PinnedRates(self._fresh_snapshot(), self.base)

    def convert(self, amount: float, from_currency: Currency | str, to_currency: Currency | str | None = None) -> float:
        """
        Convert ``amount`` between two currencies using the loaded snapshot.

        Identical currencies return ``amount`` untouched, with or without rates.

        Raises:
            RatesUnavailable: no fresh snapshot, or a currency missing from it.
        """
        return self.pinned().convert(amount, from_currency, to_currency)

    def convert_many(self, entries: Iterable, target: Currency | str | None = None, *, strict: bool = False) -> float:
        """
        Sum entries converted to ``target`` (base currency by default).

        All entries use the same snapshot. Without rates, ``strict=False``
        returns the raw sum of amounts instead of raising.
        """
        return self.pinned().convert_many(entries, target, strict=strict)

    def convert_or_identity(self, amount: float, currency: Currency | str, target: Currency | str | None = None) -> float:
        """Best-effort conversion of one amount; returns it unchanged when rates are unavailable."""
        return self.pinned().convert_or_identity(amount, currency, target)

    # ============== LIFECYCLE ==============

    def start_background_refresh(self) -> None:
        """Start the daemon thread that re-warms the cache every ``refresh_interval`` seconds."""
        with self._lock:
            if self._refresh_thread is not None and self._refresh_thread.is_alive():
                return
            self._stop_event.clear()
            self._refresh_thread = threading.Thread(target=self._refresh_loop, name="rate-refresh", daemon=True)
            self._refresh_thread.start()
        logger.info(f"Background rate refresh every {self.refresh_interval:.0f}s")

    def _refresh_loop(self) -> None:
        while not self._stop_event.wait(self.refresh_interval):
            self.refresh_now()

    def teardown(self) -> None:
        """Stop the background refresh thread."""
        self._stop_event.set()
        thread = self._refresh_thread
        if thread is not None:
            thread.join(timeout=5)
        self._refresh_thread = None


# ============== PROCESS-WIDE INSTANCE ==============

_rate_cache: ExchangeRateCache | None = None
_rate_cache_lock = threading.Lock()


def init_rate_cache(client: ExchangeRateClient | None = None, **kwargs) -> ExchangeRateCache:
    """
    Initialize and cache the shared ExchangeRateCache. Idempotent.
    """
    global _rate_cache
    with _rate_cache_lock:
        if _rate_cache is None:
            settings = get_settings()
            if client is None:
                client = ExchangeRateClient(settings.rates_api_url, timeout=settings.rates_http_timeout)
            kwargs.setdefault("ttl", settings.rates_ttl_seconds)
            _rate_cache = ExchangeRateCache(client, **kwargs)
    return _rate_cache


def get_rate_cache() -> ExchangeRateCache:
    """
    Retrieve the shared ExchangeRateCache.
    """
    if _rate_cache is None:
        raise RuntimeError("Rate cache not initialized")
    return _rate_cache


def teardown_rate_cache() -> None:
    """Stop background work and drop the shared instance."""
    global _rate_cache
    with _rate_cache_lock:
        if _rate_cache is not None:
            _rate_cache.teardown()
            _rate_cache = None


class RatesService:
    """Service for exchange-rate status shown in the UI."""

    @staticmethod
    def rates_table(cache: ExchangeRateCache) -> pd.DataFrame:
        """
        Current rates against the base currency.

        Returns:
            DataFrame with Currency and "Per 1 <base>" columns, empty when no fresh rates are loaded
        """
        column = f"Per 1 {cache.base.value}"
        snapshot = cache.current_snapshot()
        if snapshot is None:
            return pd.DataFrame({"Currency": [], column: []})
        rows = [{"Currency": currency.value, column: rate} for currency, rate in snapshot.rates.items()]
        return pd.DataFrame(rows)

    @staticmethod
    def status_message(cache: ExchangeRateCache) -> str:
        if cache.rates_available:
            return f"✅ Exchange rates loaded ({len(cache.snapshot.rates)} currencies)"
        if cache.is_loading:
            return "⏳ Loading exchange rates..."
        if cache.last_error:
            return f"⚠️ Currency conversion degraded: {cache.last_error}. Totals use unconverted amounts."
        return "⚠️ Currency conversion degraded: exchange rates not loaded. Totals use unconverted amounts."

    @staticmethod
    def refresh_rates(cache: ExchangeRateCache) -> tuple[str, pd.DataFrame]:
        """
        Force a rate refresh.

        Returns:
            Tuple of (status message, rates DataFrame)
        """
        cache.refresh_now()
        return RatesService.status_message(cache), RatesService.rates_table(cache)

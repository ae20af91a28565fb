"""Shared pytest fixtures and configuration."""

import pytest
import tempfile
import os

from core.currency import Currency
from core.errors import RateFetchFailed
from core.models import Asset, AssetInput


@pytest.fixture
def test_db(mocker):
    """Create a temporary test database and patch settings.database_path to use it."""
    # Create a temporary database file
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Patch settings.database_path in the config module
    mocker.patch("core.config.settings.database_path", db_path)

    # Initialize the database
    from core.database import init_db

    init_db()

    yield db_path

    # Cleanup: remove the temporary database file
    try:
        if os.path.exists(db_path):
            os.unlink(db_path)
    except OSError:
        pass


class FakeClock:
    """Manually advanced clock. Tests use whole milliseconds so comparisons stay exact."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: float) -> None:
        self.now += delta


class TickingClock(FakeClock):
    """Clock that moves forward by ``step`` every time it is read."""

    def __init__(self, now: float = 0.0, step: float = 1.0):
        super().__init__(now)
        self.step = step

    def __call__(self) -> float:
        now = self.now
        self.now += self.step
        return now


class FakeTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler driven by a FakeClock; ``advance`` fires due timers in order."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback) -> FakeTimer:
        timer = FakeTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, delta: float) -> None:
        end = self.clock.now + delta
        while True:
            due = [t for t in self.pending if t.due <= end]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.clock.now = max(self.clock.now, timer.due)
            timer.callback()
        self.clock.now = end


class FakeRateClient:
    """Stands in for ExchangeRateClient. Counts requests per currency."""

    def __init__(self, rates: dict | None = None):
        self.rates = dict(rates or {Currency.EUR: 0.92, Currency.ILS: 3.7, Currency.GBP: 0.79})
        self.calls: dict[Currency, int] = {}
        self.fail_with: Exception | None = None
        self.before_return = None

    def get_rates(self, base, targets):
        targets = list(targets)
        for target in targets:
            self.calls[target] = self.calls.get(target, 0) + 1
        if self.before_return is not None:
            self.before_return()
        if self.fail_with is not None:
            raise self.fail_with
        return {target: self.rates[target] for target in targets if target in self.rates}

    @property
    def fetch_count(self) -> int:
        return self.calls.get(Currency.EUR, 0)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_scheduler(fake_clock):
    return FakeScheduler(fake_clock)


@pytest.fixture
def rate_client():
    return FakeRateClient()


@pytest.fixture
def failing_rate_client():
    client = FakeRateClient()
    client.fail_with = RateFetchFailed("service unavailable")
    return client


@pytest.fixture
def rate_cache(rate_client, fake_clock):
    """A cache over the fake client with a 300s TTL, already loaded."""
    from services.rates import ExchangeRateCache

    cache = ExchangeRateCache(rate_client, clock=fake_clock, ttl=300.0)
    cache.ensure_rates_loaded()
    yield cache
    cache.teardown()


@pytest.fixture
def empty_rate_cache(failing_rate_client, fake_clock):
    """A cache that never gets rates."""
    from services.rates import ExchangeRateCache

    cache = ExchangeRateCache(failing_rate_client, clock=fake_clock, ttl=300.0)
    yield cache
    cache.teardown()


@pytest.fixture
def ticking_clock():
    return TickingClock(step=1.0)


@pytest.fixture
def ticking_rate_cache(rate_client, ticking_clock):
    """A loaded cache with a 5s TTL whose clock ticks on every read."""
    from services.rates import ExchangeRateCache

    cache = ExchangeRateCache(rate_client, clock=ticking_clock, ttl=5.0)
    cache.ensure_rates_loaded()
    yield cache
    cache.teardown()


@pytest.fixture
def euro_assets():
    """Four 92 EUR holdings, each worth 100 USD."""
    return [
        Asset(
            id=f"e{i}", user_id="u1", name=f"Euro Deposit {i}", type="cash", value=92, currency="EUR",
            location="EU", risk_level="low", created_at="2024-01-01", updated_at="2024-01-01",
        )
        for i in range(4)
    ]


@pytest.fixture
def sample_asset_inputs():
    """A small mixed-currency portfolio."""
    return [
        AssetInput(name="S&P 500 ETF", type="etf", value=100, currency="USD", location="US", risk_level="medium", annual_yield=8.0),
        AssetInput(name="Euro Savings", type="cash", value=92, currency="EUR", location="EU", risk_level="low", annual_yield=2.5),
        AssetInput(name="Tel Aviv Flat", type="realEstate", value=370, currency="ILS", location="IL", risk_level="low", annual_yield=3.0),
        AssetInput(name="Bitcoin", type="crypto", value=79, currency="GBP", location="Other", risk_level="high"),
    ]

"""
Exchange-rate HTTP client.

Talks to a HexaRate-compatible endpoint:
    GET {base_url}/rates/latest/{base}?target={currency}
    -> {"status_code": 200, "data": {"base": "USD", "target": "EUR", "mid": 0.92, ...}}
"""

from typing import Iterable

import requests

from core.currency import Currency
from core.errors import RateFetchFailed
from core.log import get_logger

logger = get_logger("rates_api")


class ExchangeRateClient:
    """Fetches pairwise rates against a base currency."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_rate(self, base: Currency, target: Currency) -> float:
        """
        Fetch how many units of ``target`` equal one unit of ``base``.

        Raises:
            RateFetchFailed: on network, HTTP or parse errors, or a missing/invalid ``mid`` field.
        """
        url = f"{self.base_url}/rates/latest/{base.value}"
        logger.debug(f"Requesting {url}?target={target.value}")
        try:
            response = self._session.get(url, params={"target": target.value}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RateFetchFailed(f"Could not fetch {base.value}/{target.value} rate: {e}") from e

        try:
            rate = float(payload["data"]["mid"])
        except (KeyError, TypeError, ValueError) as e:
            raise RateFetchFailed(f"Malformed rate response for {base.value}/{target.value}: {payload!r}") from e

        if rate <= 0:
            raise RateFetchFailed(f"Non-positive rate for {base.value}/{target.value}: {rate}")
        return rate

    def get_rates(self, base: Currency, targets: Iterable[Currency]) -> dict[Currency, float]:
        """Fetch one rate per target. Fails as a whole if any single request fails."""
        rates = {}
        for target in targets:
            rates[target] = self.get_rate(base, target)
        logger.info(f"Fetched {len(rates)} exchange rates against {base.value}")
        return rates

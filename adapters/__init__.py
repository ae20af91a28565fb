"""
Adapters for external APIs (exchange rates).
"""

from adapters.exchange_rates import ExchangeRateClient

__all__ = ["ExchangeRateClient"]

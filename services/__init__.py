"""
Services layer providing business logic abstraction.
"""

from services.portfolio import PortfolioService
from services.rates import ExchangeRateCache, RatesService, get_rate_cache, init_rate_cache, teardown_rate_cache
from services.charts import ChartsService
from services.analysis import AnalysisService
from services.session import IdleSessionMonitor, LocalActivityEvents, SessionState

__all__ = [
    "PortfolioService",
    "RatesService",
    "ExchangeRateCache",
    "init_rate_cache",
    "get_rate_cache",
    "teardown_rate_cache",
    "ChartsService",
    "AnalysisService",
    "IdleSessionMonitor",
    "LocalActivityEvents",
    "SessionState",
]

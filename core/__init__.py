"""
Core modules: configuration, currency model, asset storage and auth.
"""

from core.currency import (
    BASE_CURRENCY,
    SUPPORTED_CURRENCIES,
    Currency,
    MoneyAmount,
    RateSnapshot,
)
from core.errors import (
    AssetfolioError,
    AssetNotFoundError,
    RateFetchFailed,
    RatesUnavailable,
    SignOutFailed,
    UnsupportedCurrencyError,
)
from core.models import Asset, AssetInput, AssetType, RecurringFrequency, RiskLevel
from core.database import (
    get_connection,
    init_db,
    list_assets,
    get_asset,
    add_asset,
    update_asset,
    delete_asset,
)
from core.auth import AuthProvider, LocalAuthProvider, TokenStore, User

__all__ = [
    # Currency
    "BASE_CURRENCY",
    "SUPPORTED_CURRENCIES",
    "Currency",
    "MoneyAmount",
    "RateSnapshot",
    # Errors
    "AssetfolioError",
    "AssetNotFoundError",
    "RateFetchFailed",
    "RatesUnavailable",
    "SignOutFailed",
    "UnsupportedCurrencyError",
    # Models
    "Asset",
    "AssetInput",
    "AssetType",
    "RecurringFrequency",
    "RiskLevel",
    # Database
    "get_connection",
    "init_db",
    "list_assets",
    "get_asset",
    "add_asset",
    "update_asset",
    "delete_asset",
    # Auth
    "AuthProvider",
    "LocalAuthProvider",
    "TokenStore",
    "User",
]

"""
Exception hierarchy for Assetfolio.
"""


class AssetfolioError(Exception):
    """Base class for all application errors."""


class RatesUnavailable(AssetfolioError):
    """No fresh rate snapshot is loaded, or a requested currency is missing from it."""


class RateFetchFailed(AssetfolioError):
    """Fetching or parsing exchange rates failed; nothing was applied."""


class SignOutFailed(AssetfolioError):
    """A sign-out path raised. Logged by the idle monitor, never propagated."""


class AssetNotFoundError(AssetfolioError):
    """The asset does not exist or does not belong to the current user."""


class UnsupportedCurrencyError(AssetfolioError, ValueError):
    """A currency code outside the supported set."""

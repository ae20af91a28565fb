"""
Portfolio service for asset operations.
"""

from pathlib import Path

import pandas as pd
from pydantic import ValidationError

from core.currency import BASE_CURRENCY, Currency
from core.database import add_asset, delete_asset, list_assets, update_asset
from core.errors import AssetNotFoundError
from core.log import get_logger
from core.models import Asset, AssetInput
from services.rates import ExchangeRateCache, PinnedRates

logger = get_logger("portfolio")

ALL = "all"

ASSET_TABLE_COLUMNS = ["ID", "Name", "Type", "Ticker", "Value", "Currency", "Location", "Risk Level", "Annual Yield (%)", "Institution"]

EXPORT_COLUMNS = ["Name", "Type", "Value (USD)", "Original Value", "Currency", "Risk Level", "Annual Yield", "Location"]


def format_validation_error(error: ValidationError) -> str:
    """Flatten pydantic errors into one status line."""
    parts = []
    for err in error.errors():
        field = ".".join(str(loc) for loc in err["loc"]) or "input"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


def filter_assets(
    assets: list[Asset],
    asset_type: str = ALL,
    currency: str = ALL,
    risk_level: str = ALL,
    location: str = ALL,
) -> list[Asset]:
    """Keep assets matching every filter that is not "all"."""

    def matches(selected: str, actual: str) -> bool:
        return not selected or selected == ALL or selected == actual

    return [
        asset
        for asset in assets
        if matches(asset_type, asset.type.value)
        and matches(currency, asset.currency.value)
        and matches(risk_level, asset.risk_level.value)
        and matches(location, asset.location)
    ]


def assets_to_frame(assets: list[Asset]) -> pd.DataFrame:
    """Table view of assets in their original currencies."""
    if not assets:
        return pd.DataFrame(columns=ASSET_TABLE_COLUMNS)
    rows = [
        {
            "ID": asset.id,
            "Name": asset.name,
            "Type": asset.type.value,
            "Ticker": asset.ticker or "",
            "Value": asset.value,
            "Currency": asset.currency.value,
            "Location": asset.location,
            "Risk Level": asset.risk_level.value,
            "Annual Yield (%)": asset.annual_yield,
            "Institution": asset.managing_institution or "",
        }
        for asset in assets
    ]
    return pd.DataFrame(rows, columns=ASSET_TABLE_COLUMNS)


class PortfolioService:
    """Service for managing a user's assets."""

    @staticmethod
    def get_assets(user_id: str) -> list[Asset]:
        return list_assets(user_id)

    @staticmethod
    def get_assets_table(user_id: str) -> pd.DataFrame:
        return assets_to_frame(list_assets(user_id))

    @staticmethod
    def add_asset(user_id: str, **fields) -> tuple[str, pd.DataFrame]:
        """
        Validate and store a new asset.

        Args:
            user_id: Owner of the asset
            **fields: AssetInput fields (name, type, value, currency, location, risk_level, ...)

        Returns:
            Tuple of (status message, updated assets DataFrame)
        """
        try:
            data = AssetInput(**fields)
        except ValidationError as e:
            return f"❌ Invalid asset: {format_validation_error(e)}", PortfolioService.get_assets_table(user_id)

        asset = add_asset(user_id, data)
        logger.info(f"Added asset {asset.id} ({asset.name}) for {user_id}")
        return f"✅ Added {asset.name}", PortfolioService.get_assets_table(user_id)

    @staticmethod
    def update_asset(user_id: str, asset_id: str, **fields) -> tuple[str, pd.DataFrame]:
        """
        Validate and replace an existing asset's fields.

        Returns:
            Tuple of (status message, updated assets DataFrame)
        """
        if not asset_id or not str(asset_id).strip():
            return "❌ Select an asset to edit", PortfolioService.get_assets_table(user_id)
        try:
            data = AssetInput(**fields)
        except ValidationError as e:
            return f"❌ Invalid asset: {format_validation_error(e)}", PortfolioService.get_assets_table(user_id)

        try:
            asset = update_asset(user_id, str(asset_id).strip(), data)
        except AssetNotFoundError as e:
            return f"❌ {e}", PortfolioService.get_assets_table(user_id)
        logger.info(f"Updated asset {asset.id} for {user_id}")
        return f"✅ Updated {asset.name}", PortfolioService.get_assets_table(user_id)

    @staticmethod
    def delete_asset(user_id: str, asset_id: str) -> tuple[str, pd.DataFrame]:
        """
        Delete an asset by ID.

        Returns:
            Tuple of (status message, updated assets DataFrame)
        """
        if not asset_id or not str(asset_id).strip():
            return "❌ Enter a valid asset ID", PortfolioService.get_assets_table(user_id)
        try:
            delete_asset(user_id, str(asset_id).strip())
        except AssetNotFoundError as e:
            return f"❌ {e}", PortfolioService.get_assets_table(user_id)
        logger.info(f"Deleted asset {asset_id} for {user_id}")
        return "✅ Asset deleted", PortfolioService.get_assets_table(user_id)

    @staticmethod
    def portfolio_summary(assets: list[Asset], converter: ExchangeRateCache | PinnedRates, target: Currency = BASE_CURRENCY) -> dict:
        """
        Total value in ``target`` and average yield.

        Average yield only counts assets that have one. ``degraded`` is True
        when the total is a raw sum because rates were unavailable.
        """
        rates = converter.pinned()
        total = rates.convert_many(assets, target)
        yields = [asset.annual_yield for asset in assets if asset.annual_yield is not None]
        return {
            "total_value": total,
            "currency": target.value,
            "average_yield": sum(yields) / len(yields) if yields else None,
            "asset_count": len(assets),
            "degraded": rates.is_degraded,
        }

    @staticmethod
    def export_frame(assets: list[Asset], converter: ExchangeRateCache | PinnedRates) -> pd.DataFrame:
        """Rows for CSV export; "Value (USD)" falls back to the original value when rates are unavailable."""
        rates = converter.pinned()
        rows = [
            {
                "Name": asset.name,
                "Type": asset.type.value,
                "Value (USD)": round(rates.convert_or_identity(asset.value, asset.currency, BASE_CURRENCY), 2),
                "Original Value": asset.value,
                "Currency": asset.currency.value,
                "Risk Level": asset.risk_level.value,
                "Annual Yield": asset.annual_yield if asset.annual_yield is not None else "",
                "Location": asset.location,
            }
            for asset in assets
        ]
        return pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    @staticmethod
    def export_csv(assets: list[Asset], converter: ExchangeRateCache | PinnedRates, path: str | Path) -> Path:
        """Write the portfolio to a CSV file and return its path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        PortfolioService.export_frame(assets, converter).to_csv(path, index=False)
        logger.info(f"Exported {len(assets)} assets to {path}")
        return path

"""
Asset handlers for Gradio UI.
"""

import tempfile
from datetime import datetime
from pathlib import Path

import pandas as pd

from core.database import get_asset
from core.errors import AssetNotFoundError
from services import PortfolioService
from services.portfolio import ASSET_TABLE_COLUMNS, assets_to_frame, filter_assets
from ui.context import get_app_context

SESSION_EXPIRED = "❌ Session expired. Please sign in again."

# UI label -> stored value
ASSET_TYPE_CHOICES = {
    "Stock": "stock",
    "ETF": "etf",
    "Real Estate": "realEstate",
    "Cash": "cash",
    "Crypto": "crypto",
    "Bond": "bond",
    "Gemel": "gemel",
    "Kaspit": "kaspit",
    "Other": "other",
}
RISK_CHOICES = {"Low": "low", "Medium": "medium", "High": "high"}
FREQUENCY_CHOICES = {"Weekly": "weekly", "Monthly": "monthly", "Quarterly": "quarterly", "Annually": "annually"}


def _label_for(choices: dict[str, str], value: str | None) -> str | None:
    for label, stored in choices.items():
        if stored == value:
            return label
    return None


def current_user_id() -> str | None:
    """Current user's id, counting the call as user activity."""
    context = get_app_context()
    user = context.current_user()
    if user is None:
        return None
    context.record_activity("pointerdown")
    return user.id


def _empty_table() -> pd.DataFrame:
    return pd.DataFrame(columns=ASSET_TABLE_COLUMNS)


def _asset_fields(
    name: str,
    asset_type: str,
    ticker: str,
    value: float | None,
    currency: str,
    location: str,
    risk_level: str,
    annual_yield: float | None,
    has_recurring: bool,
    recurring_amount: float | None,
    recurring_frequency: str | None,
    notes: str,
    institution: str,
) -> dict:
    return {
        "name": name,
        "type": ASSET_TYPE_CHOICES.get(asset_type, asset_type),
        "ticker": ticker,
        "value": value if value is not None else 0,
        "currency": currency,
        "location": location,
        "risk_level": RISK_CHOICES.get(risk_level, risk_level),
        "annual_yield": annual_yield,
        "has_recurring_contribution": bool(has_recurring),
        "recurring_amount": recurring_amount if has_recurring else None,
        "recurring_frequency": FREQUENCY_CHOICES.get(recurring_frequency, recurring_frequency) if has_recurring else None,
        "notes": notes,
        "managing_institution": institution,
    }


def handle_add_asset(*form_values) -> tuple[str, pd.DataFrame]:
    """Handle adding a new asset from the form values."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED, _empty_table()
    return PortfolioService.add_asset(user_id, **_asset_fields(*form_values))


def handle_update_asset(asset_id: str, *form_values) -> tuple[str, pd.DataFrame]:
    """Handle saving edits to an existing asset."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED, _empty_table()
    return PortfolioService.update_asset(user_id, asset_id, **_asset_fields(*form_values))


def handle_delete_asset(asset_id: str) -> tuple[str, pd.DataFrame]:
    """Handle deleting an asset."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED, _empty_table()
    return PortfolioService.delete_asset(user_id, asset_id)


def handle_load_asset(asset_id: str) -> tuple:
    """Load an asset into the edit form. Returns status followed by the 13 form values."""
    user_id = current_user_id()
    blank = ("", None, "", 0, "USD", "US", None, None, False, None, None, "", "")
    if user_id is None:
        return (SESSION_EXPIRED, *blank)
    try:
        asset = get_asset(user_id, (asset_id or "").strip())
    except AssetNotFoundError as e:
        return (f"❌ {e}", *blank)
    return (
        f"✏️ Editing {asset.name}",
        asset.name,
        _label_for(ASSET_TYPE_CHOICES, asset.type.value),
        asset.ticker or "",
        asset.value,
        asset.currency.value,
        asset.location,
        _label_for(RISK_CHOICES, asset.risk_level.value),
        asset.annual_yield,
        asset.has_recurring_contribution,
        asset.recurring_amount,
        _label_for(FREQUENCY_CHOICES, asset.recurring_frequency.value if asset.recurring_frequency else None),
        asset.notes or "",
        asset.managing_institution or "",
    )


def refresh_assets(asset_type: str = "all", currency: str = "all", risk_level: str = "all", location: str = "all") -> pd.DataFrame:
    """Refresh the assets table with the selected filters applied."""
    user_id = current_user_id()
    if user_id is None:
        return _empty_table()
    assets = PortfolioService.get_assets(user_id)
    filtered = filter_assets(
        assets,
        asset_type=ASSET_TYPE_CHOICES.get(asset_type, asset_type),
        currency=currency,
        risk_level=RISK_CHOICES.get(risk_level, risk_level),
        location=location,
    )
    return assets_to_frame(filtered)


def handle_export_csv() -> tuple[str, str | None]:
    """Export the current user's portfolio to a CSV file for download."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED, None
    assets = PortfolioService.get_assets(user_id)
    if not assets:
        return "❌ No assets to export", None
    rates = get_app_context().conversion_rates()

    export_dir = Path(tempfile.gettempdir()) / "assetfolio"
    path = export_dir / f"portfolio_data_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    PortfolioService.export_csv(assets, rates, path)
    status = f"✅ Exported {len(assets)} assets"
    if rates.is_degraded:
        status += " (⚠️ USD values unconverted: exchange rates unavailable)"
    return status, str(path)

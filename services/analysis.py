"""
Analysis service for portfolio breakdowns and insights.

All values are converted to the display currency through the shared rate
cache. When rates are unavailable the conversion degrades to raw amounts and
results carry ``degraded=True``.
"""

import pandas as pd

from core.config import get_settings
from core.currency import BASE_CURRENCY, Currency
from core.models import Asset, AssetType, RiskLevel
from services.rates import ExchangeRateCache, PinnedRates

BREAKDOWN_DIMENSIONS = ("type", "currency", "risk", "location", "institution")

FALLBACK_COLOR = "#6B7280"

TYPE_COLORS = {
    AssetType.REAL_ESTATE.value: "#10B981",
    AssetType.ETF.value: "#3B82F6",
    AssetType.BOND.value: "#6366F1",
    AssetType.CRYPTO.value: "#8B5CF6",
    AssetType.STOCK.value: "#A855F7",
    AssetType.CASH.value: "#F59E0B",
    AssetType.OTHER.value: FALLBACK_COLOR,
    AssetType.GEMEL.value: "#DC2626",
    AssetType.KASPIT.value: "#0EA5E9",
}

RISK_COLORS = {
    RiskLevel.LOW.value: "#10B981",
    RiskLevel.MEDIUM.value: "#F59E0B",
    RiskLevel.HIGH.value: "#EF4444",
}

CURRENCY_COLORS = {
    Currency.USD.value: "#3B82F6",
    Currency.EUR.value: "#8B5CF6",
    Currency.ILS.value: "#10B981",
    Currency.GBP.value: "#EF4444",
}

LOCATION_COLORS = {
    "US": "#3B82F6",
    "EU": "#8B5CF6",
    "IL": "#10B981",
    "Other": FALLBACK_COLOR,
}

LABELS = {
    "etf": "ETF",
    "realEstate": "Real Estate",
    "low": "Low Risk",
    "medium": "Medium Risk",
    "high": "High Risk",
}


def format_label(key: str) -> str:
    if key in LABELS:
        return LABELS[key]
    return key[:1].upper() + key[1:]


def _key_and_color(asset: Asset, by: str) -> tuple[str, str]:
    if by == "type":
        key = asset.type.value
        return key, TYPE_COLORS.get(key, FALLBACK_COLOR)
    if by == "currency":
        key = asset.currency.value
        return key, CURRENCY_COLORS.get(key, FALLBACK_COLOR)
    if by == "risk":
        key = asset.risk_level.value
        return key, RISK_COLORS.get(key, FALLBACK_COLOR)
    if by == "location":
        key = asset.location
        return key, LOCATION_COLORS.get(key, FALLBACK_COLOR)
    key = asset.managing_institution or "Unspecified"
    return key, FALLBACK_COLOR


class AnalysisService:
    """Service for aggregate views over a list of assets."""

    @staticmethod
    def breakdown(assets: list[Asset], by: str, converter: ExchangeRateCache | PinnedRates, target: Currency = BASE_CURRENCY) -> pd.DataFrame:
        """
        Group converted values by one dimension.

        Args:
            assets: Assets to aggregate
            by: One of type, currency, risk, location, institution
            converter: Shared rate cache
            target: Currency values are expressed in

        Returns:
            DataFrame with name, value, percent and color columns, largest first
            (``frame.attrs["degraded"]`` is True when values are unconverted)
        """
        if by not in BREAKDOWN_DIMENSIONS:
            raise ValueError(f"Unknown breakdown dimension: {by!r}")

        columns = ["name", "value", "percent", "color"]
        rates = converter.pinned()
        if not assets:
            frame = pd.DataFrame(columns=columns)
            frame.attrs["degraded"] = rates.is_degraded
            return frame

        groups: dict[str, dict] = {}
        for asset in assets:
            key, color = _key_and_color(asset, by)
            value = rates.convert_or_identity(asset.value, asset.currency, target)
            group = groups.setdefault(key, {"name": format_label(key) if by != "institution" else key, "value": 0.0, "color": color})
            group["value"] += value

        total = sum(group["value"] for group in groups.values())
        rows = [
            {**group, "percent": (group["value"] / total * 100) if total > 0 else 0.0}
            for group in groups.values()
        ]
        frame = pd.DataFrame(rows, columns=columns).sort_values("value", ascending=False).reset_index(drop=True)
        frame.attrs["degraded"] = rates.is_degraded
        return frame

    @staticmethod
    def insights(assets: list[Asset], converter: ExchangeRateCache | PinnedRates, target: Currency = BASE_CURRENCY, top_n: int = 3) -> dict:
        """
        Top holdings, yield leader and laggard, and high-risk concentration.

        Returns:
            Dict with total_value, top_holdings [(name, value)], best_yield and
            worst_yield ((name, yield) or None), high_risk_pct, high_risk_warning
            and degraded.
        """
        threshold = get_settings().high_risk_warning_pct
        rates = converter.pinned()
        result = {
            "total_value": 0.0,
            "currency": target.value,
            "top_holdings": [],
            "best_yield": None,
            "worst_yield": None,
            "high_risk_pct": 0.0,
            "high_risk_warning": None,
            "degraded": rates.is_degraded,
        }
        if not assets:
            return result

        converted = [(asset, rates.convert_or_identity(asset.value, asset.currency, target)) for asset in assets]
        total = sum(value for _, value in converted)
        result["total_value"] = total

        ranked = sorted(converted, key=lambda pair: pair[1], reverse=True)
        result["top_holdings"] = [(asset.name, value) for asset, value in ranked[:top_n]]

        with_yield = [asset for asset in assets if asset.annual_yield is not None]
        if with_yield:
            best = max(with_yield, key=lambda a: a.annual_yield)
            worst = min(with_yield, key=lambda a: a.annual_yield)
            result["best_yield"] = (best.name, best.annual_yield)
            result["worst_yield"] = (worst.name, worst.annual_yield)

        high_risk = sum(value for asset, value in converted if asset.risk_level == RiskLevel.HIGH)
        high_risk_pct = (high_risk / total * 100) if total > 0 else 0.0
        result["high_risk_pct"] = high_risk_pct
        if high_risk_pct > threshold:
            result["high_risk_warning"] = (
                f"{high_risk_pct:.1f}% of your portfolio is in high-risk assets. Consider diversifying to reduce risk."
            )
        return result

    @staticmethod
    def insights_markdown(insights: dict) -> str:
        """Render insights for the UI."""
        currency = insights["currency"]
        lines = ["### Portfolio Insights", ""]
        if insights["degraded"]:
            lines += ["⚠️ *Currency conversion degraded: values are shown unconverted.*", ""]
        if insights["high_risk_warning"]:
            lines += [f"**High Risk Exposure:** {insights['high_risk_warning']}", ""]

        lines.append(f"**Total value:** {insights['total_value']:,.0f} {currency}")
        lines.append("")
        lines.append("**Top Holdings**")
        if insights["top_holdings"]:
            for name, value in insights["top_holdings"]:
                lines.append(f"- {name}: {value:,.0f} {currency}")
        else:
            lines.append("- No assets yet")
        lines.append("")

        best = insights["best_yield"]
        worst = insights["worst_yield"]
        lines.append(f"**Best Performing:** {best[0]}: {best[1]:.2f}% annual yield" if best else "**Best Performing:** N/A")
        lines.append(f"**Needs Attention:** {worst[0]}: {worst[1]:.2f}% annual yield" if worst else "**Needs Attention:** N/A")
        return "\n".join(lines)

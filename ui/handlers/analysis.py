"""
Analysis, breakdown and rate handlers for Gradio UI.
"""

import pandas as pd

from services import AnalysisService, ChartsService, PortfolioService, RatesService
from services.rates import PinnedRates
from ui.context import get_app_context
from ui.handlers.assets import SESSION_EXPIRED, current_user_id

BREAKDOWN_CHOICES = {
    "By Type": "type",
    "By Currency": "currency",
    "By Risk": "risk",
    "By Location": "location",
    "By Institution": "institution",
}


def conversion_banner(rates: PinnedRates | None = None) -> str:
    """Empty when the rates used were fine, a warning line otherwise."""
    cache = get_app_context().rates
    degraded = rates.is_degraded if rates is not None else cache.is_degraded
    if not degraded:
        return ""
    return RatesService.status_message(cache)


def generate_breakdown(breakdown_label: str):
    """
    Build the breakdown chart and table.

    Returns:
        Tuple of (plotly figure or None, breakdown DataFrame, banner markdown)
    """
    user_id = current_user_id()
    if user_id is None:
        return None, pd.DataFrame(), SESSION_EXPIRED
    context = get_app_context()
    rates = context.conversion_rates()
    by = BREAKDOWN_CHOICES.get(breakdown_label, breakdown_label)
    assets = PortfolioService.get_assets(user_id)
    frame = AnalysisService.breakdown(assets, by, rates, context.display_currency)
    fig = ChartsService.breakdown_pie(frame, title=breakdown_label)
    table = frame.drop(columns=["color"]).round({"value": 2, "percent": 1})
    return fig, table, conversion_banner(rates)


def generate_insights() -> str:
    """Insights markdown for the current user."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED
    context = get_app_context()
    assets = PortfolioService.get_assets(user_id)
    if not assets:
        return "No assets yet. Add some in the Assets tab."
    insights = AnalysisService.insights(assets, context.conversion_rates(), context.display_currency)
    return AnalysisService.insights_markdown(insights)


def portfolio_summary() -> str:
    """One-line portfolio summary."""
    user_id = current_user_id()
    if user_id is None:
        return SESSION_EXPIRED
    context = get_app_context()
    assets = PortfolioService.get_assets(user_id)
    summary = PortfolioService.portfolio_summary(assets, context.conversion_rates(), context.display_currency)
    avg = summary["average_yield"]
    text = (
        f"**Total:** {summary['total_value']:,.0f} {summary['currency']} · "
        f"**Assets:** {summary['asset_count']} · "
        f"**Average yield:** {f'{avg:.2f}%' if avg is not None else 'N/A'}"
    )
    if summary["degraded"]:
        text += "  \n⚠️ *Currency conversion degraded: total is an unconverted sum.*"
    return text


def handle_refresh_rates() -> tuple[str, pd.DataFrame]:
    """Force a rate refresh."""
    if current_user_id() is None:
        return SESSION_EXPIRED, pd.DataFrame()
    return RatesService.refresh_rates(get_app_context().rates)


def refresh_rates_table() -> tuple[str, pd.DataFrame]:
    rates = get_app_context().rates
    return RatesService.status_message(rates), RatesService.rates_table(rates)

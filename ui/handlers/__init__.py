"""
UI Handlers - thin wrappers around services for Gradio event handling.
"""

from ui.handlers.assets import (
    handle_add_asset,
    handle_update_asset,
    handle_delete_asset,
    handle_load_asset,
    refresh_assets,
    handle_export_csv,
)
from ui.handlers.analysis import (
    generate_breakdown,
    generate_insights,
    portfolio_summary,
    conversion_banner,
    handle_refresh_rates,
    refresh_rates_table,
)
from ui.handlers.session import (
    poll_session,
    handle_sign_out,
)

__all__ = [
    # Asset handlers
    "handle_add_asset",
    "handle_update_asset",
    "handle_delete_asset",
    "handle_load_asset",
    "refresh_assets",
    "handle_export_csv",
    # Analysis handlers
    "generate_breakdown",
    "generate_insights",
    "portfolio_summary",
    "conversion_banner",
    "handle_refresh_rates",
    "refresh_rates_table",
    # Session handlers
    "poll_session",
    "handle_sign_out",
]

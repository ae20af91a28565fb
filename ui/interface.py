"""
Assetfolio - Gradio UI Interface

Creates the Gradio blocks UI for multi-currency portfolio tracking.
"""

import gradio as gr

from core.currency import SUPPORTED_CURRENCIES
from core.models import LOCATIONS
from ui.handlers import (
    # Asset handlers
    handle_add_asset,
    handle_update_asset,
    handle_delete_asset,
    handle_load_asset,
    refresh_assets,
    handle_export_csv,
    # Analysis handlers
    generate_breakdown,
    generate_insights,
    portfolio_summary,
    handle_refresh_rates,
    refresh_rates_table,
    # Session handlers
    poll_session,
    handle_sign_out,
)
from ui.handlers.analysis import BREAKDOWN_CHOICES
from ui.handlers.assets import ASSET_TYPE_CHOICES, FREQUENCY_CHOICES, RISK_CHOICES

SESSION_POLL_SECONDS = 5

# Runs in the browser: report tab visibility as the poll's input
VISIBILITY_JS = "(visible) => !document.hidden"
REDIRECT_JS = "(target) => { if (target) { window.location.href = target; } return target; }"

CURRENCY_CHOICES = [currency.value for currency in SUPPORTED_CURRENCIES]


def _asset_form(prefix: str) -> list:
    """Asset form inputs in the order the asset handlers expect."""
    with gr.Row():
        name = gr.Textbox(label="Name", placeholder="e.g., S&P 500 ETF", max_lines=1)
        asset_type = gr.Dropdown(choices=list(ASSET_TYPE_CHOICES), value="Stock", label="Type")
        ticker = gr.Textbox(label="Ticker (optional)", placeholder="e.g., VOO", max_lines=1)
    with gr.Row():
        value = gr.Number(label="Value", value=0, minimum=0, precision=2)
        currency = gr.Dropdown(choices=CURRENCY_CHOICES, value="USD", label="Currency")
        location = gr.Dropdown(choices=list(LOCATIONS), value="US", label="Location", allow_custom_value=True)
    with gr.Row():
        risk_level = gr.Radio(choices=list(RISK_CHOICES), value="Medium", label="Risk Level")
        annual_yield = gr.Number(label="Annual Yield (%)", value=None, precision=2)
        institution = gr.Textbox(label="Managing Institution (optional)", max_lines=1)
    with gr.Accordion("Recurring contribution", open=False):
        with gr.Row():
            has_recurring = gr.Checkbox(label="Has recurring contribution", value=False, elem_id=f"{prefix}-recurring")
            recurring_amount = gr.Number(label="Amount", value=None, minimum=0, precision=2)
            recurring_frequency = gr.Dropdown(choices=list(FREQUENCY_CHOICES), value="Monthly", label="Frequency")
    notes = gr.Textbox(label="Notes (optional)", max_lines=2)
    return [name, asset_type, ticker, value, currency, location, risk_level, annual_yield, has_recurring, recurring_amount, recurring_frequency, notes, institution]


def create_ui() -> gr.Blocks:
    """Create the Gradio UI."""

    with gr.Blocks(title="Assetfolio") as demo:
        with gr.Row():
            gr.Markdown(
                """
                # Assetfolio

                **Track assets across USD, EUR, ILS and GBP. Totals are converted to your display currency with cached exchange rates.**
                """,
            )
            btn_sign_out = gr.Button("🚪 Sign out", variant="secondary", size="sm", scale=0, min_width=120)

        summary_md = gr.Markdown()

        # Session polling: visibility in, redirect target out
        tab_visible = gr.Checkbox(value=True, visible=False)
        redirect_target = gr.Textbox(visible=False)
        session_timer = gr.Timer(SESSION_POLL_SECONDS)

        # ============== TAB 1: ASSETS ==============
        with gr.Tab("💼 Assets"):
            with gr.Row():
                with gr.Column(scale=2):
                    gr.Markdown("### Add Asset")
                    add_inputs = _asset_form("add")
                    btn_add = gr.Button("💾 Save Asset", variant="primary")

                with gr.Column(scale=1):
                    gr.Markdown("### Delete Asset")
                    del_asset_id = gr.Textbox(label="Asset ID to Delete", max_lines=1)
                    btn_del = gr.Button("🗑️ Delete", variant="secondary")

            asset_status = gr.Textbox(label="Status", interactive=False)

            with gr.Row():
                filter_type = gr.Dropdown(choices=["all", *ASSET_TYPE_CHOICES], value="all", label="Type")
                filter_currency = gr.Dropdown(choices=["all", *CURRENCY_CHOICES], value="all", label="Currency")
                filter_risk = gr.Dropdown(choices=["all", *RISK_CHOICES], value="all", label="Risk")
                filter_location = gr.Dropdown(choices=["all", *LOCATIONS], value="all", label="Location")
                btn_refresh_assets = gr.Button("🔄", variant="secondary", size="sm", scale=0, min_width=40)
            filters = [filter_type, filter_currency, filter_risk, filter_location]

            asset_table = gr.Dataframe(label="Your Assets", interactive=False)

            with gr.Accordion("✏️ Edit Asset", open=False):
                with gr.Row():
                    edit_asset_id = gr.Textbox(label="Asset ID", max_lines=1)
                    btn_load = gr.Button("📂 Load", variant="secondary", scale=0)
                edit_inputs = _asset_form("edit")
                btn_update = gr.Button("💾 Save Changes", variant="primary")

            with gr.Row():
                btn_export = gr.Button("📤 Export CSV", variant="secondary")
                export_file = gr.File(label="Download", interactive=False)

            btn_add.click(handle_add_asset, inputs=add_inputs, outputs=[asset_status, asset_table]).then(portfolio_summary, outputs=[summary_md])
            btn_del.click(handle_delete_asset, inputs=[del_asset_id], outputs=[asset_status, asset_table]).then(portfolio_summary, outputs=[summary_md])
            btn_load.click(handle_load_asset, inputs=[edit_asset_id], outputs=[asset_status, *edit_inputs])
            btn_update.click(handle_update_asset, inputs=[edit_asset_id, *edit_inputs], outputs=[asset_status, asset_table]).then(portfolio_summary, outputs=[summary_md])
            btn_refresh_assets.click(refresh_assets, inputs=filters, outputs=[asset_table])
            for dropdown in filters:
                dropdown.change(refresh_assets, inputs=filters, outputs=[asset_table])
            btn_export.click(handle_export_csv, outputs=[asset_status, export_file])

        # ============== TAB 2: BREAKDOWN ==============
        with gr.Tab("🥧 Breakdown"):
            breakdown_by = gr.Radio(choices=list(BREAKDOWN_CHOICES), value="By Type", label="Group by")
            breakdown_banner = gr.Markdown()
            with gr.Row():
                breakdown_chart = gr.Plot(label="Allocation")
                breakdown_table = gr.Dataframe(label="Breakdown", interactive=False)

            breakdown_by.change(generate_breakdown, inputs=[breakdown_by], outputs=[breakdown_chart, breakdown_table, breakdown_banner])

        # ============== TAB 3: INSIGHTS ==============
        with gr.Tab("💡 Insights"):
            btn_insights = gr.Button("🔍 Analyze Portfolio", variant="primary")
            insights_md = gr.Markdown()

            btn_insights.click(generate_insights, outputs=[insights_md])

        # ============== TAB 4: EXCHANGE RATES ==============
        with gr.Tab("💱 Exchange Rates"):
            gr.Markdown(
                """
                ### Cached Exchange Rates

                Rates are fetched from HexaRate against USD and refreshed in the background before they go stale.
                When rates are unavailable, totals fall back to an unconverted sum and are flagged as degraded.
                """
            )
            rates_status = gr.Markdown()
            rates_table = gr.Dataframe(label="Rates", interactive=False)
            btn_refresh_rates = gr.Button("🔄 Refresh Rates", variant="secondary")

            btn_refresh_rates.click(handle_refresh_rates, outputs=[rates_status, rates_table])

        # ============== SESSION ==============
        session_timer.tick(poll_session, inputs=[tab_visible], outputs=[redirect_target], js=VISIBILITY_JS).then(
            None, inputs=[redirect_target], js=REDIRECT_JS
        )
        btn_sign_out.click(handle_sign_out, outputs=[redirect_target]).then(None, inputs=[redirect_target], js=REDIRECT_JS)

        # ============== INITIAL LOAD ==============
        demo.load(portfolio_summary, outputs=[summary_md])
        demo.load(refresh_assets, inputs=filters, outputs=[asset_table])
        demo.load(generate_breakdown, inputs=[breakdown_by], outputs=[breakdown_chart, breakdown_table, breakdown_banner])
        demo.load(refresh_rates_table, outputs=[rates_status, rates_table])

    return demo

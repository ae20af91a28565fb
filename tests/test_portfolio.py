"""Tests for the portfolio service."""

import pandas as pd
import pytest

from core.database import add_asset
from services.portfolio import EXPORT_COLUMNS, PortfolioService, assets_to_frame, filter_assets

USER = "me@example.com"


def _fields(**overrides):
    fields = {
        "name": "Index Fund",
        "type": "etf",
        "ticker": "VOO",
        "value": 1000,
        "currency": "USD",
        "location": "US",
        "risk_level": "medium",
        "annual_yield": 7.5,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def stored_assets(test_db, sample_asset_inputs):
    return [add_asset(USER, data) for data in sample_asset_inputs]


class TestAddAsset:
    """Tests for PortfolioService.add_asset."""

    def test_add_valid(self, test_db):
        status, table = PortfolioService.add_asset(USER, **_fields())

        assert status == "✅ Added Index Fund"
        assert len(table) == 1
        assert table.iloc[0]["Ticker"] == "VOO"

    def test_add_invalid_value(self, test_db):
        status, table = PortfolioService.add_asset(USER, **_fields(value=-5))

        assert status.startswith("❌ Invalid asset")
        assert "value" in status
        assert table.empty

    def test_add_unsupported_currency(self, test_db):
        status, _ = PortfolioService.add_asset(USER, **_fields(currency="JPY"))
        assert status.startswith("❌")

    def test_blank_name_rejected(self, test_db):
        status, _ = PortfolioService.add_asset(USER, **_fields(name="   "))
        assert "name" in status


class TestUpdateDeleteAsset:
    """Tests for PortfolioService.update_asset and delete_asset."""

    def test_update(self, stored_assets):
        target = stored_assets[0]
        status, table = PortfolioService.update_asset(USER, target.id, **_fields(name="Renamed", value=5))

        assert status == "✅ Updated Renamed"
        assert "Renamed" in set(table["Name"])

    def test_update_requires_id(self, test_db):
        status, _ = PortfolioService.update_asset(USER, "  ", **_fields())
        assert status == "❌ Select an asset to edit"

    def test_update_unknown(self, test_db):
        status, _ = PortfolioService.update_asset(USER, "missing", **_fields())
        assert status.startswith("❌ Asset missing not found")

    def test_delete(self, stored_assets):
        status, table = PortfolioService.delete_asset(USER, stored_assets[0].id)

        assert status == "✅ Asset deleted"
        assert len(table) == len(stored_assets) - 1

    def test_delete_other_users_asset(self, stored_assets):
        status, _ = PortfolioService.delete_asset("someone-else", stored_assets[0].id)
        assert status.startswith("❌")
        assert len(PortfolioService.get_assets(USER)) == len(stored_assets)


class TestFilters:
    """Tests for filter_assets and the table view."""

    def test_all_means_no_filter(self, stored_assets):
        assert filter_assets(stored_assets) == stored_assets

    def test_combined_filters(self, stored_assets):
        result = filter_assets(stored_assets, risk_level="low", location="IL")
        assert [asset.name for asset in result] == ["Tel Aviv Flat"]

    def test_filter_by_type_and_currency(self, stored_assets):
        assert [a.name for a in filter_assets(stored_assets, asset_type="crypto")] == ["Bitcoin"]
        assert [a.name for a in filter_assets(stored_assets, currency="EUR")] == ["Euro Savings"]

    def test_empty_frame_has_columns(self):
        frame = assets_to_frame([])
        assert frame.empty
        assert "Annual Yield (%)" in frame.columns


class TestSummaryAndExport:
    """Tests for portfolio_summary and CSV export."""

    def test_summary_converts_to_usd(self, stored_assets, rate_cache):
        summary = PortfolioService.portfolio_summary(stored_assets, rate_cache)

        assert summary["total_value"] == pytest.approx(400.0)
        assert summary["currency"] == "USD"
        assert summary["average_yield"] == pytest.approx((8.0 + 2.5 + 3.0) / 3)
        assert summary["asset_count"] == 4
        assert summary["degraded"] is False

    def test_summary_degraded(self, stored_assets, empty_rate_cache):
        summary = PortfolioService.portfolio_summary(stored_assets, empty_rate_cache)

        assert summary["total_value"] == 100 + 92 + 370 + 79
        assert summary["degraded"] is True

    def test_export_csv(self, stored_assets, rate_cache, tmp_path):
        path = PortfolioService.export_csv(stored_assets, rate_cache, tmp_path / "out" / "portfolio.csv")

        frame = pd.read_csv(path)
        assert list(frame.columns) == EXPORT_COLUMNS
        flat = frame[frame["Name"] == "Tel Aviv Flat"].iloc[0]
        assert flat["Value (USD)"] == pytest.approx(100.0)
        assert flat["Original Value"] == 370
        assert flat["Currency"] == "ILS"

    def test_export_without_rates_keeps_original_values(self, stored_assets, empty_rate_cache):
        frame = PortfolioService.export_frame(stored_assets, empty_rate_cache)
        assert list(frame["Value (USD)"]) == list(frame["Original Value"])

    def test_summary_total_is_consistent(self, euro_assets, ticking_rate_cache):
        summary = PortfolioService.portfolio_summary(euro_assets, ticking_rate_cache)

        assert summary["total_value"] == pytest.approx(400.0)
        assert summary["degraded"] is False

    def test_summary_after_expiry_is_fully_raw(self, euro_assets, ticking_rate_cache, ticking_clock):
        ticking_clock.now = 10

        summary = PortfolioService.portfolio_summary(euro_assets, ticking_rate_cache)

        assert summary["total_value"] == 368
        assert summary["degraded"] is True

    def test_export_converts_every_row(self, euro_assets, ticking_rate_cache):
        frame = PortfolioService.export_frame(euro_assets, ticking_rate_cache)
        assert frame["Value (USD)"].tolist() == pytest.approx([100.0] * 4)

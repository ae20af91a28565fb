"""
Database module for asset storage.
Uses SQLite for persistent storage of each user's asset records.

Every query is scoped by user_id so one user can never read or modify
another user's assets.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from core import config
from core.errors import AssetNotFoundError
from core.models import Asset, AssetInput

ASSET_COLUMNS = (
    "id",
    "user_id",
    "name",
    "type",
    "ticker",
    "value",
    "currency",
    "location",
    "risk_level",
    "annual_yield",
    "has_recurring_contribution",
    "recurring_amount",
    "recurring_frequency",
    "notes",
    "managing_institution",
    "created_at",
    "updated_at",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def get_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Get a database connection with automatic commit/rollback and cleanup.

    Usage:
        with get_connection() as conn:
            c = conn.cursor()
            c.execute("SELECT * FROM assets")
    """
    db_path = config.settings.database_path
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Initialize the database with the assets table."""
    with get_connection() as conn:
        c = conn.cursor()

        c.execute("""
            CREATE TABLE IF NOT EXISTS assets (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                ticker TEXT,
                value REAL NOT NULL DEFAULT 0,
                currency TEXT NOT NULL DEFAULT 'USD',
                location TEXT NOT NULL,
                risk_level TEXT NOT NULL DEFAULT 'medium',
                annual_yield REAL,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        c.execute("CREATE INDEX IF NOT EXISTS idx_assets_user ON assets(user_id)")

        # Migrations for existing databases
        c.execute("PRAGMA table_info(assets)")
        columns = [col[1] for col in c.fetchall()]

        if "has_recurring_contribution" not in columns:
            c.execute("ALTER TABLE assets ADD COLUMN has_recurring_contribution INTEGER NOT NULL DEFAULT 0")
        if "recurring_amount" not in columns:
            c.execute("ALTER TABLE assets ADD COLUMN recurring_amount REAL")
        if "recurring_frequency" not in columns:
            c.execute("ALTER TABLE assets ADD COLUMN recurring_frequency TEXT")
        if "managing_institution" not in columns:
            c.execute("ALTER TABLE assets ADD COLUMN managing_institution TEXT")


def _row_to_asset(row: sqlite3.Row) -> Asset:
    return Asset(**{key: row[key] for key in ASSET_COLUMNS})


def _input_to_params(data: AssetInput) -> dict:
    return {
        "name": data.name,
        "type": data.type.value,
        "ticker": data.ticker,
        "value": data.value,
        "currency": data.currency.value,
        "location": data.location,
        "risk_level": data.risk_level.value,
        "annual_yield": data.annual_yield,
        "has_recurring_contribution": int(data.has_recurring_contribution),
        "recurring_amount": data.recurring_amount if data.has_recurring_contribution else None,
        "recurring_frequency": data.recurring_frequency.value if data.has_recurring_contribution and data.recurring_frequency else None,
        "notes": data.notes,
        "managing_institution": data.managing_institution,
    }


# ============== ASSET FUNCTIONS ==============


def list_assets(user_id: str) -> list[Asset]:
    """Get all assets of a user, newest first."""
    with get_connection() as conn:
        c = conn.cursor()
        c.execute(
            f"SELECT {', '.join(ASSET_COLUMNS)} FROM assets WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        return [_row_to_asset(row) for row in c.fetchall()]


def get_asset(user_id: str, asset_id: str) -> Asset:
    """
    Get a single asset.

    Raises:
        AssetNotFoundError: if the asset does not exist for this user.
    """
    with get_connection() as conn:
        c = conn.cursor()
        c.execute(
            f"SELECT {', '.join(ASSET_COLUMNS)} FROM assets WHERE user_id = ? AND id = ?",
            (user_id, asset_id),
        )
        row = c.fetchone()
    if row is None:
        raise AssetNotFoundError(f"Asset {asset_id} not found")
    return _row_to_asset(row)


def add_asset(user_id: str, data: AssetInput) -> Asset:
    """Insert a new asset and return the stored record."""
    now = _now_iso()
    params = _input_to_params(data)
    params.update({"id": str(uuid.uuid4()), "user_id": user_id, "created_at": now, "updated_at": now})

    with get_connection() as conn:
        c = conn.cursor()
        c.execute(
            f"INSERT INTO assets ({', '.join(ASSET_COLUMNS)}) VALUES ({', '.join(':' + col for col in ASSET_COLUMNS)})",
            params,
        )
    return get_asset(user_id, params["id"])


def update_asset(user_id: str, asset_id: str, data: AssetInput) -> Asset:
    """
    Replace an asset's editable fields and bump updated_at.

    Raises:
        AssetNotFoundError: if the asset does not exist for this user.
    """
    params = _input_to_params(data)
    assignments = ", ".join(f"{col} = :{col}" for col in params)
    params.update({"id": asset_id, "user_id": user_id, "updated_at": _now_iso()})

    with get_connection() as conn:
        c = conn.cursor()
        c.execute(
            f"UPDATE assets SET {assignments}, updated_at = :updated_at WHERE id = :id AND user_id = :user_id",
            params,
        )
        if c.rowcount == 0:
            raise AssetNotFoundError(f"Asset {asset_id} not found")
    return get_asset(user_id, asset_id)


def delete_asset(user_id: str, asset_id: str) -> None:
    """
    Delete an asset.

    Raises:
        AssetNotFoundError: if the asset does not exist for this user.
    """
    with get_connection() as conn:
        c = conn.cursor()
        c.execute("DELETE FROM assets WHERE id = ? AND user_id = ?", (asset_id, user_id))
        if c.rowcount == 0:
            raise AssetNotFoundError(f"Asset {asset_id} not found")

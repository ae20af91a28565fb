"""
Asset records and their validated input payload.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.currency import Currency


class AssetType(str, Enum):
    STOCK = "stock"
    ETF = "etf"
    REAL_ESTATE = "realEstate"
    CASH = "cash"
    CRYPTO = "crypto"
    BOND = "bond"
    OTHER = "other"
    GEMEL = "gemel"
    KASPIT = "kaspit"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurringFrequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


LOCATIONS = ("US", "EU", "IL", "Other")


class AssetInput(BaseModel):
    """Fields a user can set on create or edit."""

    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=False)

    name: str = Field(min_length=1)
    type: AssetType
    ticker: str | None = None
    value: float = Field(ge=0)
    currency: Currency
    location: str = Field(min_length=1)
    risk_level: RiskLevel
    annual_yield: float | None = None
    has_recurring_contribution: bool = False
    recurring_amount: float | None = Field(default=None, ge=0)
    recurring_frequency: RecurringFrequency | None = None
    notes: str | None = None
    managing_institution: str | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def _parse_currency(cls, value):
        return Currency.parse(value)

    @field_validator("ticker", "notes", "managing_institution", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Asset(AssetInput):
    """A stored asset owned by one user."""

    id: str
    user_id: str
    created_at: str
    updated_at: str

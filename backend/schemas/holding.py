"""Pydantic schemas for holdings and portfolio valuation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HoldingCreate(BaseModel):
    """Schema for recording a new holding."""

    coin_id: str = Field(min_length=1, max_length=100)
    coin_symbol: str = Field(default="", max_length=20)
    coin_name: str = Field(default="", max_length=100)
    quantity: Decimal = Field(ge=0, max_digits=28, decimal_places=8)
    average_buy_price: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=28, decimal_places=8
    )
    notes: Optional[str] = None


class HoldingUpdate(BaseModel):
    """Schema for editing a holding. Omitted fields are left unchanged."""

    quantity: Optional[Decimal] = Field(default=None, ge=0, max_digits=28, decimal_places=8)
    average_buy_price: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=28, decimal_places=8
    )
    notes: Optional[str] = None


class HoldingResponse(BaseModel):
    """Schema for a holding in API responses."""

    id: str
    user_id: str
    coin_id: str
    coin_symbol: str
    coin_name: str
    quantity: Decimal
    average_buy_price: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HoldingValuationResponse(BaseModel):
    """Valuation of one holding. Price fields are null when unavailable."""

    holding_id: str
    coin_id: str
    quantity: Decimal
    average_buy_price: Optional[Decimal] = None
    current_price: Optional[Decimal] = None
    price_observed_at: Optional[datetime] = None
    current_value: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    profit_loss_percentage: Optional[Decimal] = None
    price_unavailable: bool = False
    price_stale: bool = False

    model_config = ConfigDict(from_attributes=True)


class PortfolioValueResponse(BaseModel):
    """Current portfolio value for one user."""

    user_id: str
    total_value: Decimal
    total_cost: Decimal
    total_profit_loss: Decimal
    is_partial: bool
    unavailable_coin_ids: list[str]
    holdings: list[HoldingValuationResponse]


class SnapshotResponse(BaseModel):
    """A persisted portfolio snapshot."""

    id: str
    user_id: str
    total_value: Decimal
    is_partial: bool
    taken_at: datetime

    model_config = ConfigDict(from_attributes=True)

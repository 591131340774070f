"""Pydantic schemas for price alerts."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from services.alert_evaluator import AlertCondition, AlertState, alert_state


class AlertCreate(BaseModel):
    """Schema for creating a price alert. New alerts start armed."""

    coin_id: str = Field(min_length=1, max_length=100)
    coin_symbol: str = Field(default="", max_length=20)
    coin_name: str = Field(default="", max_length=100)
    condition: AlertCondition
    target_price: Decimal = Field(gt=0, max_digits=28, decimal_places=8)


class AlertUpdate(BaseModel):
    """Schema for editing an alert. Setting is_active=true re-arms it."""

    condition: Optional[AlertCondition] = None
    target_price: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=28, decimal_places=8
    )
    is_active: Optional[bool] = None


class AlertActiveUpdate(BaseModel):
    """Request body for toggling an alert on or off."""

    is_active: bool


class AlertResponse(BaseModel):
    """Schema for a price alert in API responses."""

    id: str
    user_id: str
    coin_id: str
    coin_symbol: str
    coin_name: str
    condition: AlertCondition
    target_price: Decimal
    is_active: bool
    triggered_price: Optional[Decimal] = None
    triggered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def state(self) -> AlertState:
        return alert_state(self)

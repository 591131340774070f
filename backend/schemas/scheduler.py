"""Pydantic schemas for evaluation cycle reports."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from services.alert_evaluator import AlertCondition


class TransitionResponse(BaseModel):
    """A triggered alert reported by a cycle."""

    alert_id: str
    user_id: str
    coin_id: str
    condition: AlertCondition
    target_price: Decimal
    triggered_price: Decimal
    observed_at: datetime

    model_config = {"from_attributes": True}


class CycleReportResponse(BaseModel):
    """Outcome of one evaluation cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    user_id: Optional[str] = None
    coins_requested: int
    missing_coin_ids: list[str]
    users_valued: int
    snapshots_written: int
    alerts_evaluated: int
    transitions: list[TransitionResponse]
    notifications_sent: int
    errors: list[str]
    timed_out: bool
    degraded: bool


class SchedulerStatusResponse(BaseModel):
    """Whether the periodic scheduler is running, and its last cycle."""

    running: bool
    interval_seconds: float
    last_report: Optional[CycleReportResponse] = None

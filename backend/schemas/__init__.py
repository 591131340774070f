"""Pydantic schemas for API request/response validation."""

from schemas.alert import AlertActiveUpdate, AlertCreate, AlertResponse, AlertUpdate
from schemas.holding import (
    HoldingCreate,
    HoldingResponse,
    HoldingUpdate,
    HoldingValuationResponse,
    PortfolioValueResponse,
    SnapshotResponse,
)
from schemas.scheduler import CycleReportResponse, SchedulerStatusResponse, TransitionResponse

__all__ = [
    "AlertActiveUpdate",
    "AlertCreate",
    "AlertResponse",
    "AlertUpdate",
    "CycleReportResponse",
    "HoldingCreate",
    "HoldingResponse",
    "HoldingUpdate",
    "HoldingValuationResponse",
    "PortfolioValueResponse",
    "SchedulerStatusResponse",
    "SnapshotResponse",
    "TransitionResponse",
]

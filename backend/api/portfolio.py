"""Portfolio API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.scheduler import get_scheduler
from database import get_db
from schemas import HoldingValuationResponse, PortfolioValueResponse, SnapshotResponse
from services.evaluation_scheduler import EvaluationScheduler
from services.snapshot_service import SnapshotService
from services.valuation_engine import PortfolioValue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users/{user_id}/portfolio", tags=["portfolio"])


@router.get("/value", response_model=PortfolioValueResponse)
def get_portfolio_value(
    user_id: str,
    scheduler: EvaluationScheduler = Depends(get_scheduler),
):
    """Value the user's holdings at current prices.

    Runs an on-demand cycle for this user, so any of their armed alerts
    that cross are triggered (and notified) as a side effect. Holdings
    without a price are listed with ``price_unavailable=true`` and
    excluded from the totals.
    """
    report = scheduler.refresh_user(user_id)
    value = report.valuations.get(user_id, PortfolioValue())
    return PortfolioValueResponse(
        user_id=user_id,
        total_value=value.total_value,
        total_cost=value.total_cost,
        total_profit_loss=value.total_profit_loss,
        is_partial=value.is_partial,
        unavailable_coin_ids=sorted(value.unavailable_coin_ids),
        holdings=[HoldingValuationResponse.model_validate(h) for h in value.holdings],
    )


@router.get("/snapshots", response_model=list[SnapshotResponse])
def list_snapshots(
    user_id: str,
    days: int = Query(default=30, ge=1, le=3650),
    include_partial: bool = Query(default=True),
    db: Session = Depends(get_db),
):
    """Portfolio value history, oldest first."""
    return SnapshotService.list_for_user(
        db, user_id, days=days, include_partial=include_partial
    )


@router.post("/snapshots", response_model=SnapshotResponse, status_code=201)
def take_snapshot(
    user_id: str,
    scheduler: EvaluationScheduler = Depends(get_scheduler),
    db: Session = Depends(get_db),
):
    """Value the user's holdings now and store the result as a snapshot.

    Returns 409 when the user has no holdings and 503 when none of them
    could be priced; no snapshot is stored in either case.
    """
    report = scheduler.refresh_user(user_id, persist_snapshot=True)
    if report.snapshots_written == 0:
        value = report.valuations.get(user_id)
        if value is not None and not value.holdings:
            raise HTTPException(status_code=409, detail="No holdings to snapshot")
        logger.warning(
            "Snapshot for user %s not taken: %s", user_id, "; ".join(report.errors) or "no prices"
        )
        raise HTTPException(status_code=503, detail="Prices unavailable; snapshot not taken")
    return SnapshotService.latest_for_user(db, user_id)

"""Evaluation scheduler API endpoints."""

import logging

from fastapi import APIRouter, Depends

from schemas import CycleReportResponse, SchedulerStatusResponse, TransitionResponse
from services.evaluation_scheduler import (
    CycleReport,
    EvaluationScheduler,
    get_evaluation_scheduler,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


def get_scheduler() -> EvaluationScheduler:
    """Get the process-wide EvaluationScheduler; overridden in tests."""
    return get_evaluation_scheduler()


def cycle_report_response(report: CycleReport) -> CycleReportResponse:
    """Convert a CycleReport into its API representation."""
    return CycleReportResponse(
        started_at=report.started_at,
        finished_at=report.finished_at,
        user_id=report.user_id,
        coins_requested=report.coins_requested,
        missing_coin_ids=sorted(report.missing_coin_ids),
        users_valued=report.users_valued,
        snapshots_written=report.snapshots_written,
        alerts_evaluated=report.alerts_evaluated,
        transitions=[TransitionResponse.model_validate(t) for t in report.transitions],
        notifications_sent=report.notifications_sent,
        errors=list(report.errors),
        timed_out=report.timed_out,
        degraded=report.degraded,
    )


@router.post("/run", response_model=CycleReportResponse)
def run_cycle(scheduler: EvaluationScheduler = Depends(get_scheduler)):
    """Run one evaluation cycle now and return its report.

    Always returns 200; a cycle that lost prices, hit its deadline or had
    failing units is reported with ``degraded=true``.
    """
    report = scheduler.run_cycle()
    return cycle_report_response(report)


@router.get("/status", response_model=SchedulerStatusResponse)
def get_status(scheduler: EvaluationScheduler = Depends(get_scheduler)):
    """Report whether periodic cycles are running and the last full cycle."""
    last = scheduler.last_report
    return SchedulerStatusResponse(
        running=scheduler.is_running,
        interval_seconds=scheduler.interval_seconds,
        last_report=cycle_report_response(last) if last is not None else None,
    )

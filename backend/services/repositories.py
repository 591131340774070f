"""Repository interfaces used by the evaluation scheduler.

The scheduler reads plain summaries (never live ORM objects) so the data
it works on is a consistent snapshot taken at the start of a cycle, and
each write opens its own short-lived session. That keeps every unit of
work (one user's snapshot, one alert's trigger) committed or dropped on
its own.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterator, Optional, Protocol

from sqlalchemy.orm import Session

from services.alert_evaluator import AlertSummary, AlertTransition
from services.alert_service import AlertService
from services.holding_service import HoldingService
from services.snapshot_service import SnapshotService
from services.valuation_engine import HoldingSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotRecord:
    """A portfolio total to append to the user's history."""

    user_id: str
    total_value: Decimal
    taken_at: datetime
    is_partial: bool = False


class HoldingRepository(Protocol):
    def list_holdings(self, user_id: Optional[str] = None) -> list[HoldingSummary]:
        """Holdings of one user, or of every user when user_id is None."""
        ...


class AlertRepository(Protocol):
    def list_armed_alerts(self, user_id: Optional[str] = None) -> list[AlertSummary]:
        """Active alerts of one user, or of every user when user_id is None."""
        ...

    def apply_transition(self, transition: AlertTransition) -> bool:
        """Persist a trigger. Returns False if the alert was no longer active."""
        ...


class SnapshotRepository(Protocol):
    def append_snapshot(self, snapshot: SnapshotRecord) -> None:
        ...


SessionFactory = Callable[[], Session]


class _SessionScoped:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class SqlHoldingRepository(_SessionScoped):
    """HoldingRepository backed by HoldingService."""

    def list_holdings(self, user_id: Optional[str] = None) -> list[HoldingSummary]:
        with self._session() as db:
            return [
                HoldingSummary.from_model(h)
                for h in HoldingService.list_holdings(db, user_id)
            ]


class SqlAlertRepository(_SessionScoped):
    """AlertRepository backed by AlertService."""

    def list_armed_alerts(self, user_id: Optional[str] = None) -> list[AlertSummary]:
        with self._session() as db:
            summaries = []
            for alert in AlertService.list_armed(db, user_id):
                try:
                    summaries.append(AlertSummary.from_model(alert))
                except ValueError:
                    # Unknown condition string in the table; skip this row only
                    logger.exception("Unreadable alert %s", alert.id)
            return summaries

    def apply_transition(self, transition: AlertTransition) -> bool:
        with self._session() as db:
            return AlertService.apply_transition(db, transition)


class SqlSnapshotRepository(_SessionScoped):
    """SnapshotRepository backed by SnapshotService."""

    def append_snapshot(self, snapshot: SnapshotRecord) -> None:
        with self._session() as db:
            SnapshotService.append(
                db,
                user_id=snapshot.user_id,
                total_value=snapshot.total_value,
                is_partial=snapshot.is_partial,
                taken_at=snapshot.taken_at,
            )

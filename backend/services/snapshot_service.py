"""Snapshot service - append-only portfolio value history."""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from models import PortfolioSnapshot

logger = logging.getLogger(__name__)


class SnapshotService:
    """Writes and reads PortfolioSnapshot rows. Rows are never updated."""

    @staticmethod
    def append(
        db: Session,
        user_id: str,
        total_value: Decimal,
        is_partial: bool = False,
        taken_at: Optional[datetime] = None,
    ) -> PortfolioSnapshot:
        snapshot = PortfolioSnapshot(
            user_id=user_id,
            total_value=total_value,
            is_partial=is_partial,
            taken_at=taken_at or datetime.now(timezone.utc),
        )
        db.add(snapshot)
        db.commit()
        db.refresh(snapshot)
        logger.debug(
            "Snapshot for user %s: %s%s",
            user_id, total_value, " (partial)" if is_partial else "",
        )
        return snapshot

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: str,
        days: int = 30,
        include_partial: bool = True,
    ) -> list[PortfolioSnapshot]:
        """Return the user's snapshots from the last ``days`` days, oldest first."""
        # SQLite stores naive datetimes; compare against naive UTC
        since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        query = db.query(PortfolioSnapshot).filter(
            PortfolioSnapshot.user_id == user_id,
            PortfolioSnapshot.taken_at >= since,
        )
        if not include_partial:
            query = query.filter(PortfolioSnapshot.is_partial.is_(False))
        return query.order_by(PortfolioSnapshot.taken_at.asc()).all()

    @staticmethod
    def latest_for_user(db: Session, user_id: str) -> Optional[PortfolioSnapshot]:
        return (
            db.query(PortfolioSnapshot)
            .filter(PortfolioSnapshot.user_id == user_id)
            .order_by(PortfolioSnapshot.taken_at.desc())
            .first()
        )

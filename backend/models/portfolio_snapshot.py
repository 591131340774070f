"""PortfolioSnapshot model - append-only point-in-time portfolio total."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Numeric, String

from database import Base
from models.utils import generate_uuid


class PortfolioSnapshot(Base):
    """Total value of a user's holdings at the time of a valuation cycle.

    ``is_partial`` marks snapshots where at least one holding had no price
    and was left out of ``total_value``.
    """

    __tablename__ = "portfolio_snapshots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    total_value = Column(Numeric(28, 8), nullable=False)
    is_partial = Column(Boolean, nullable=False, default=False)
    taken_at = Column(
        DateTime, nullable=False, index=True, default=lambda: datetime.now(timezone.utc)
    )

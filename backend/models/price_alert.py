"""PriceAlert model - a user's threshold rule on a coin price."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Numeric, String

from database import Base
from models.utils import generate_uuid


class PriceAlert(Base):
    """Fires once when a coin price crosses ``target_price``.

    State is carried by ``is_active`` plus the trigger metadata:
    an armed alert is active; a fired alert is inactive with
    ``triggered_at`` set and stays listed until the user re-arms it.
    """

    __tablename__ = "price_alerts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    coin_id = Column(String(100), nullable=False)
    coin_symbol = Column(String(20), nullable=False, default="")
    coin_name = Column(String(100), nullable=False, default="")
    condition = Column(String(10), nullable=False)  # "above" | "below"
    target_price = Column(Numeric(28, 8), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    triggered_price = Column(Numeric(28, 8), nullable=True)
    triggered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

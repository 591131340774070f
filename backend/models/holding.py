"""PortfolioHolding model - a user's recorded position in one coin."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, Numeric, String, Text, UniqueConstraint

from database import Base
from models.utils import generate_uuid


class PortfolioHolding(Base):
    """A quantity of one coin owned by one user."""

    __tablename__ = "portfolio_holdings"
    __table_args__ = (
        UniqueConstraint("user_id", "coin_id", name="uix_holding_user_coin"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    coin_id = Column(String(100), nullable=False)  # CoinGecko id, e.g. "bitcoin"
    coin_symbol = Column(String(20), nullable=False, default="")
    coin_name = Column(String(100), nullable=False, default="")
    quantity = Column(Numeric(28, 8), nullable=False, default=Decimal("0"))
    average_buy_price = Column(Numeric(28, 8), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

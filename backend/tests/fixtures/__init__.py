"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from models import PortfolioHolding, PriceAlert
from sqlalchemy.orm import Session

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def holding(db: Session) -> PortfolioHolding:
    """Create a test bitcoin holding for USER_ID."""
    h = PortfolioHolding(
        user_id=USER_ID,
        coin_id="bitcoin",
        coin_symbol="BTC",
        coin_name="Bitcoin",
        quantity=Decimal("2"),
        average_buy_price=Decimal("30000"),
    )
    db.add(h)
    db.commit()
    db.refresh(h)
    return h


@pytest.fixture
def alert(db: Session) -> PriceAlert:
    """Create an armed 'bitcoin above 50000' alert for USER_ID."""
    a = PriceAlert(
        user_id=USER_ID,
        coin_id="bitcoin",
        coin_symbol="BTC",
        coin_name="Bitcoin",
        condition="above",
        target_price=Decimal("50000"),
        is_active=True,
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


@pytest.fixture
def triggered_alert(db: Session) -> PriceAlert:
    """Create an already-triggered 'ethereum below 2000' alert for USER_ID."""
    a = PriceAlert(
        user_id=USER_ID,
        coin_id="ethereum",
        condition="below",
        target_price=Decimal("2000"),
        is_active=False,
        triggered_price=Decimal("1950"),
        triggered_at=datetime(2024, 4, 1, 9, 30, tzinfo=timezone.utc),
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    return a

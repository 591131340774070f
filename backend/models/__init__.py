"""SQLAlchemy ORM models."""

from .holding import PortfolioHolding
from .portfolio_snapshot import PortfolioSnapshot
from .price_alert import PriceAlert
from .utils import generate_uuid

__all__ = ["PortfolioHolding", "PortfolioSnapshot", "PriceAlert", "generate_uuid"]

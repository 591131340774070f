"""API route handlers."""
from . import alerts, holdings, portfolio, scheduler

__all__ = ["alerts", "holdings", "portfolio", "scheduler"]

"""External integrations.

This package contains:
- Price source protocol: interface for upstream coin price feeds
- CoinGecko client: current prices from the CoinGecko API
- Notification protocol: interface for alert delivery, plus a logging dispatcher
"""

from integrations.notification_protocol import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from integrations.price_source_protocol import PartialPriceFailure, PriceQuote, PriceSource

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "PartialPriceFailure",
    "PriceQuote",
    "PriceSource",
]

"""Notification dispatch protocol and the default logging dispatcher."""

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from services.alert_evaluator import AlertTransition

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    """Delivers one notification per alert transition.

    Called once per transition; the engine does not retry. Delivery
    failures are the dispatcher's concern and may be raised or swallowed.
    """

    def notify(self, user_id: str, transition: "AlertTransition") -> None:
        ...


class LoggingNotificationDispatcher:
    """Writes triggered alerts to the application log.

    Used when no delivery channel (email, push) is wired in.
    """

    def notify(self, user_id: str, transition: "AlertTransition") -> None:
        logger.info(
            "Price alert for user %s: %s is %s %s at %s (alert %s)",
            user_id,
            transition.coin_id,
            transition.condition.value,
            transition.target_price,
            transition.triggered_price,
            transition.alert_id,
        )

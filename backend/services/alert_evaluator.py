"""Alert evaluator - decides which armed price alerts fire this cycle."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from integrations.price_source_protocol import PriceQuote

logger = logging.getLogger(__name__)


class InvalidAlertError(ValueError):
    """An alert violates its invariants (e.g. non-positive target price)."""


class AlertCondition(str, Enum):
    """Direction of the threshold crossing."""

    above = "above"
    below = "below"


class AlertState(str, Enum):
    """Lifecycle state derived from ``is_active`` and trigger metadata."""

    ARMED = "armed"
    TRIGGERED = "triggered"
    DISABLED = "disabled"


@dataclass(frozen=True)
class AlertSummary:
    """Lightweight alert data read from the repository for one cycle."""

    id: str
    user_id: str
    coin_id: str
    condition: AlertCondition
    target_price: Decimal
    is_active: bool = True
    triggered_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, alert: Any) -> "AlertSummary":
        return cls(
            id=alert.id,
            user_id=alert.user_id,
            coin_id=alert.coin_id,
            condition=AlertCondition(alert.condition),
            target_price=Decimal(alert.target_price),
            is_active=bool(alert.is_active),
            triggered_at=alert.triggered_at,
        )


@dataclass(frozen=True)
class AlertTransition:
    """An armed alert that crossed its threshold.

    Carries what the caller needs to persist the trigger and send exactly
    one notification.
    """

    alert_id: str
    user_id: str
    coin_id: str
    condition: AlertCondition
    target_price: Decimal
    triggered_price: Decimal
    observed_at: datetime


def alert_state(alert: Any) -> AlertState:
    """Derive the lifecycle state of an alert model or summary."""
    if alert.is_active:
        return AlertState.ARMED
    if alert.triggered_at is not None:
        return AlertState.TRIGGERED
    return AlertState.DISABLED


def validate_alert(alert: Any) -> AlertCondition:
    """Check alert invariants and return its parsed condition."""
    try:
        condition = AlertCondition(alert.condition)
    except ValueError:
        raise InvalidAlertError(
            f"alert {alert.id}: unknown condition {alert.condition!r}"
        ) from None
    if alert.target_price is None or Decimal(alert.target_price) <= 0:
        raise InvalidAlertError(
            f"alert {alert.id}: target price must be > 0, got {alert.target_price}"
        )
    return condition


def crosses(condition: AlertCondition, price: Decimal, target: Decimal) -> bool:
    """Return True when ``price`` satisfies ``condition`` against ``target``.

    Both directions are inclusive: touching the target fires.
    """
    if condition is AlertCondition.above:
        return price >= target
    return price <= target


class AlertEvaluator:
    """Finds armed alerts whose condition holds at the current price.

    Holds no memory between cycles. An alert that fired is persisted as
    inactive, so it is filtered out of every later cycle until the user
    re-arms it; that flag is the only guard against repeat notifications.
    """

    def evaluate_one(
        self, alert: Any, prices: Mapping[str, PriceQuote]
    ) -> Optional[AlertTransition]:
        """Evaluate a single alert.

        Returns None for inactive alerts, alerts with no price this cycle,
        and alerts whose condition does not hold.

        Raises:
            InvalidAlertError: the alert breaks its invariants.
        """
        if not alert.is_active:
            return None
        condition = validate_alert(alert)

        quote = prices.get(alert.coin_id)
        if quote is None:
            return None

        target = Decimal(alert.target_price)
        if not crosses(condition, quote.price, target):
            return None

        return AlertTransition(
            alert_id=alert.id,
            user_id=alert.user_id,
            coin_id=alert.coin_id,
            condition=condition,
            target_price=target,
            triggered_price=quote.price,
            observed_at=quote.observed_at,
        )

    def evaluate(
        self, alerts: Iterable[Any], prices: Mapping[str, PriceQuote]
    ) -> list[AlertTransition]:
        """Evaluate every alert against one price map.

        An invalid alert is logged and skipped; it never stops the others.
        Transitions are returned sorted by alert id so a fixed input always
        produces the same output.
        """
        transitions: list[AlertTransition] = []
        for alert in alerts:
            try:
                transition = self.evaluate_one(alert, prices)
            except InvalidAlertError:
                logger.exception("Skipping invalid alert %s", alert.id)
                continue
            if transition is not None:
                logger.info(
                    "Alert %s triggered: %s %s %s at %s",
                    transition.alert_id,
                    transition.coin_id,
                    transition.condition.value,
                    transition.target_price,
                    transition.triggered_price,
                )
                transitions.append(transition)
        transitions.sort(key=lambda t: t.alert_id)
        return transitions

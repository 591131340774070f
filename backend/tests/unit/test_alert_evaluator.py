"""Tests for AlertEvaluator and alert helpers."""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from integrations.price_source_protocol import PriceQuote
from services.alert_evaluator import (
    AlertCondition,
    AlertEvaluator,
    AlertState,
    AlertSummary,
    InvalidAlertError,
    alert_state,
    crosses,
    validate_alert,
)
from tests.fixtures.mocks import OBSERVED_AT, make_alert


def _prices(**prices: str) -> dict[str, PriceQuote]:
    return {
        coin_id: PriceQuote(coin_id, Decimal(price), OBSERVED_AT)
        for coin_id, price in prices.items()
    }


@pytest.fixture
def evaluator():
    return AlertEvaluator()


class TestCrosses:
    @pytest.mark.parametrize(
        "condition,price,target,expected",
        [
            (AlertCondition.above, "50001", "50000", True),
            (AlertCondition.above, "50000", "50000", True),
            (AlertCondition.above, "49999.99", "50000", False),
            (AlertCondition.below, "99", "100", True),
            (AlertCondition.below, "100", "100", True),
            (AlertCondition.below, "150", "100", False),
        ],
    )
    def test_crosses(self, condition, price, target, expected):
        assert crosses(condition, Decimal(price), Decimal(target)) is expected


class TestEvaluateOne:
    def test_above_triggers_at_target(self, evaluator):
        """above 50000 at exactly 50000 fires with triggered_price 50000."""
        alert = make_alert("a1", "bitcoin", "above", "50000")

        transition = evaluator.evaluate_one(alert, _prices(bitcoin="50000"))

        assert transition is not None
        assert transition.alert_id == "a1"
        assert transition.user_id == "user-1"
        assert transition.condition is AlertCondition.above
        assert transition.target_price == Decimal("50000")
        assert transition.triggered_price == Decimal("50000")
        assert transition.observed_at == OBSERVED_AT

    def test_no_second_transition_without_rearm(self, evaluator):
        """Once triggered (inactive), a higher price fires nothing more."""
        alert = make_alert("a1", "bitcoin", "above", "50000")
        evaluator.evaluate_one(alert, _prices(bitcoin="50000"))
        triggered = replace(alert, is_active=False, triggered_at=OBSERVED_AT)

        assert evaluator.evaluate_one(triggered, _prices(bitcoin="51000")) is None

    def test_below_not_crossed(self, evaluator):
        """below 100 at 150 stays armed."""
        alert = make_alert("a1", "solana", "below", "100")

        assert evaluator.evaluate_one(alert, _prices(solana="150")) is None
        assert alert_state(alert) is AlertState.ARMED

    def test_missing_price_never_triggers(self, evaluator):
        alert = make_alert("a1", "bitcoin", "below", "1000000")

        assert evaluator.evaluate_one(alert, _prices(ethereum="1")) is None

    def test_non_positive_target_is_invalid(self, evaluator):
        alert = make_alert("a1", "bitcoin", "above", "0")

        with pytest.raises(InvalidAlertError):
            evaluator.evaluate_one(alert, _prices(bitcoin="1"))

    def test_unknown_condition_is_invalid(self, evaluator):
        alert = AlertSummary(
            id="a1",
            user_id="user-1",
            coin_id="bitcoin",
            condition="sideways",
            target_price=Decimal("1"),
        )

        with pytest.raises(InvalidAlertError, match="unknown condition"):
            evaluator.evaluate_one(alert, _prices(bitcoin="1"))


class TestEvaluate:
    def test_sorted_by_alert_id(self, evaluator):
        alerts = [
            make_alert("c", "bitcoin", "above", "1"),
            make_alert("a", "ethereum", "below", "3000"),
            make_alert("b", "bitcoin", "below", "1"),
        ]

        transitions = evaluator.evaluate(alerts, _prices(bitcoin="40000", ethereum="2500"))

        assert [t.alert_id for t in transitions] == ["a", "c"]

    def test_deterministic_for_fixed_prices(self, evaluator):
        alerts = [make_alert(f"a{i}", "bitcoin", "above", str(i * 10000)) for i in range(1, 6)]
        prices = _prices(bitcoin="30000")

        assert evaluator.evaluate(alerts, prices) == evaluator.evaluate(list(reversed(alerts)), prices)

    def test_invalid_alert_does_not_stop_others(self, evaluator):
        alerts = [
            make_alert("bad", "bitcoin", "above", "-5"),
            make_alert("good", "bitcoin", "above", "100"),
        ]

        transitions = evaluator.evaluate(alerts, _prices(bitcoin="200"))

        assert [t.alert_id for t in transitions] == ["good"]

    def test_inactive_alerts_skipped(self, evaluator):
        alerts = [make_alert("a1", "bitcoin", "above", "1", is_active=False)]

        assert evaluator.evaluate(alerts, _prices(bitcoin="2")) == []


class TestAlertState:
    def test_armed(self):
        assert alert_state(make_alert("a", "bitcoin", "above", "1")) is AlertState.ARMED

    def test_triggered(self):
        alert = replace(
            make_alert("a", "bitcoin", "above", "1", is_active=False),
            triggered_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        assert alert_state(alert) is AlertState.TRIGGERED

    def test_disabled(self):
        alert = make_alert("a", "bitcoin", "above", "1", is_active=False)
        assert alert_state(alert) is AlertState.DISABLED


class TestValidateAlert:
    def test_returns_condition(self):
        assert validate_alert(make_alert("a", "bitcoin", "below", "5")) is AlertCondition.below

    def test_model_alert(self, alert):
        assert validate_alert(alert) is AlertCondition.above

    def test_summary_from_model(self, alert):
        summary = AlertSummary.from_model(alert)

        assert summary.condition is AlertCondition.above
        assert summary.target_price == Decimal("50000")
        assert summary.is_active is True

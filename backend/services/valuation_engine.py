"""Valuation engine - current value and profit/loss of coin holdings."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Iterable, Mapping, Optional

from integrations.price_source_protocol import PriceQuote

logger = logging.getLogger(__name__)

# Quantities and prices are stored as NUMERIC(28, 8), so a product has at
# most 56 significant digits. Working above that keeps every product and
# sum exact; the default context (28 digits) would round.
_EXACT_PRECISION = 60

_PERCENT_PLACES = Decimal("0.01")
_HUNDRED = Decimal("100")


class InvalidHoldingError(ValueError):
    """A holding violates its invariants (e.g. negative quantity)."""


@dataclass(frozen=True)
class HoldingSummary:
    """Lightweight holding data read from the repository for one cycle."""

    id: str
    user_id: str
    coin_id: str
    quantity: Decimal
    average_buy_price: Optional[Decimal] = None

    @classmethod
    def from_model(cls, holding: Any) -> "HoldingSummary":
        return cls(
            id=holding.id,
            user_id=holding.user_id,
            coin_id=holding.coin_id,
            quantity=Decimal(holding.quantity),
            average_buy_price=(
                Decimal(holding.average_buy_price)
                if holding.average_buy_price is not None
                else None
            ),
        )


@dataclass
class HoldingValuation:
    """Valuation of a single holding against one price map."""

    holding_id: str
    coin_id: str
    quantity: Decimal
    average_buy_price: Optional[Decimal] = None
    current_price: Optional[Decimal] = None
    price_observed_at: Optional[datetime] = None
    current_value: Optional[Decimal] = None
    cost_basis: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    profit_loss_percentage: Optional[Decimal] = None
    price_unavailable: bool = False
    price_stale: bool = False


@dataclass
class PortfolioValue:
    """Aggregate valuation of a set of holdings."""

    total_value: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    total_profit_loss: Decimal = Decimal("0")
    holdings: list[HoldingValuation] = field(default_factory=list)

    @property
    def unavailable_coin_ids(self) -> set[str]:
        return {h.coin_id for h in self.holdings if h.price_unavailable}

    @property
    def is_partial(self) -> bool:
        """True when at least one holding was left out of the totals."""
        return any(h.price_unavailable for h in self.holdings)


def validate_holding(holding: Any) -> None:
    """Raise InvalidHoldingError if ``holding`` breaks the holding invariants."""
    if holding.quantity is None or Decimal(holding.quantity) < 0:
        raise InvalidHoldingError(
            f"holding {holding.id}: quantity must be >= 0, got {holding.quantity}"
        )
    if holding.average_buy_price is not None and Decimal(holding.average_buy_price) < 0:
        raise InvalidHoldingError(
            f"holding {holding.id}: average buy price must be >= 0, "
            f"got {holding.average_buy_price}"
        )


class ValuationEngine:
    """Values holdings against a resolved price map.

    Pure and synchronous: no I/O, no shared state. Holdings whose coin
    has no price are flagged ``price_unavailable`` and excluded from the
    totals instead of failing the whole valuation.
    """

    def value_holding(
        self,
        holding: Any,
        prices: Mapping[str, PriceQuote],
        stale_ids: Iterable[str] = (),
    ) -> HoldingValuation:
        """Value one holding.

        ``profit_loss`` is left as None when the holding has no average
        buy price; zero would read as break-even.
        """
        validate_holding(holding)

        quantity = Decimal(holding.quantity)
        avg_price = (
            Decimal(holding.average_buy_price)
            if holding.average_buy_price is not None
            else None
        )
        valuation = HoldingValuation(
            holding_id=holding.id,
            coin_id=holding.coin_id,
            quantity=quantity,
            average_buy_price=avg_price,
        )

        quote = prices.get(holding.coin_id)
        if quote is None:
            valuation.price_unavailable = True
            return valuation

        with localcontext() as ctx:
            ctx.prec = _EXACT_PRECISION
            valuation.current_price = quote.price
            valuation.price_observed_at = quote.observed_at
            valuation.price_stale = holding.coin_id in set(stale_ids)
            valuation.current_value = quantity * quote.price

            if avg_price is not None:
                cost = quantity * avg_price
                valuation.cost_basis = cost
                valuation.profit_loss = valuation.current_value - cost
                if cost > 0:
                    valuation.profit_loss_percentage = (
                        valuation.profit_loss / cost * _HUNDRED
                    ).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)

        return valuation

    def value(
        self,
        holdings: Iterable[Any],
        prices: Mapping[str, PriceQuote],
        stale_ids: Iterable[str] = (),
    ) -> PortfolioValue:
        """Value every holding and roll up the totals.

        Args:
            holdings: Holding models or HoldingSummary records.
            prices: Resolved quotes keyed by coin id; may be partial.
            stale_ids: Coin ids whose quote is a caller-chosen last-known
                fallback; those holdings are flagged ``price_stale``.

        Returns:
            PortfolioValue with per-holding results. ``total_value`` sums
            holdings with a price; ``total_cost``/``total_profit_loss``
            sum holdings with both a price and a cost basis.
        """
        stale = frozenset(stale_ids)
        result = PortfolioValue()

        with localcontext() as ctx:
            ctx.prec = _EXACT_PRECISION
            for holding in holdings:
                valuation = self.value_holding(holding, prices, stale)
                result.holdings.append(valuation)
                if valuation.current_value is None:
                    continue
                result.total_value += valuation.current_value
                if valuation.cost_basis is not None:
                    result.total_cost += valuation.cost_basis
                    result.total_profit_loss += valuation.profit_loss

        if result.is_partial:
            logger.debug(
                "Valuation excluded %d holdings with no price (%s)",
                sum(1 for h in result.holdings if h.price_unavailable),
                ", ".join(sorted(result.unavailable_coin_ids)),
            )
        return result

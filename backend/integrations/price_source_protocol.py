"""Price source protocol definitions.

Defines the interface the price cache uses to fetch current coin prices,
independent of the upstream API behind it.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Protocol


@dataclass(frozen=True)
class PriceQuote:
    """A single price observation for a coin, in the quote currency."""

    coin_id: str
    price: Decimal  # Always > 0; sources drop non-positive prices
    observed_at: datetime


class PartialPriceFailure(Exception):
    """Some requested coin ids could not be priced.

    ``resolved`` holds the quotes that *were* obtained so callers can
    decide whether to continue with a partial price map or abort.
    """

    def __init__(
        self,
        missing: Iterable[str],
        resolved: Mapping[str, PriceQuote] | None = None,
    ):
        self.missing = frozenset(missing)
        self.resolved = dict(resolved or {})
        super().__init__(
            f"no price for {len(self.missing)} coin(s): {', '.join(sorted(self.missing))}"
        )


class PriceSource(Protocol):
    """Protocol for upstream price sources."""

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'coingecko')."""
        ...

    def fetch_prices(self, coin_ids: set[str]) -> dict[str, PriceQuote]:
        """Fetch current prices for the given coin ids in one batch.

        Args:
            coin_ids: Coin identifiers (e.g. ``{"bitcoin", "ethereum"}``).

        Returns:
            Dict mapping each priced coin id to its quote. Ids the source
            could not price are simply absent.

        Raises:
            ProviderError: the whole request failed (timeout, HTTP error,
                malformed payload).
        """
        ...

    def close(self) -> None:
        """Release any connections held by the source."""
        ...

"""CoinGecko price source for current cryptocurrency prices."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from integrations.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.price_source_protocol import PriceQuote

logger = logging.getLogger(__name__)

# /simple/price accepts a comma-separated id list; very long URLs get
# rejected upstream, so large batches are split.
_MAX_IDS_PER_REQUEST = 250


class CoinGeckoClient:
    """Price source using the CoinGecko ``/simple/price`` endpoint."""

    max_ids_per_request = _MAX_IDS_PER_REQUEST

    def __init__(
        self,
        api_key: Optional[str] = None,
        vs_currency: str = "usd",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize with optional API key.

        Args:
            api_key: CoinGecko demo API key. If provided, uses the
                     x-cg-demo-api-key header for higher rate limits.
                     If None, uses the keyless public API.
            vs_currency: Quote currency code understood by CoinGecko.
            timeout: Per-request timeout in seconds. A timed-out request
                     fails every id in that request.
            transport: Optional httpx transport (tests use MockTransport).
        """
        headers: dict[str, str] = {"accept": "application/json"}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._vs_currency = vs_currency.lower()
        self._client = httpx.Client(
            base_url="https://api.coingecko.com/api/v3",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def provider_name(self) -> str:
        return "coingecko"

    def _get(self, path: str, params: dict[str, str]) -> httpx.Response:
        """Issue a GET, mapping httpx failures onto the provider exceptions."""
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(
                f"CoinGecko request timed out: {e}",
                provider_name=self.provider_name,
                timed_out=True,
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderAPIError(
                f"CoinGecko returned HTTP {e.response.status_code}",
                provider_name=self.provider_name,
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(
                f"CoinGecko connection failed: {e}",
                provider_name=self.provider_name,
            ) from e
        except httpx.HTTPError as e:
            # Undecodable bodies, redirect loops and the like
            raise ProviderConnectionError(
                f"CoinGecko request failed: {e}",
                provider_name=self.provider_name,
            ) from e

    def _parse_quotes(self, payload: object) -> dict[str, PriceQuote]:
        """Turn a /simple/price payload into quotes, skipping unusable entries.

        Payload shape::

            {"bitcoin": {"usd": 67187.33, "last_updated_at": 1711356300}, ...}
        """
        if not isinstance(payload, dict):
            raise ProviderDataError(
                f"CoinGecko: expected an object, got {type(payload).__name__}",
                provider_name=self.provider_name,
            )

        quotes: dict[str, PriceQuote] = {}
        for coin_id, entry in payload.items():
            if not isinstance(entry, dict) or entry.get(self._vs_currency) is None:
                logger.warning("CoinGecko: no %s price for %s", self._vs_currency, coin_id)
                continue
            try:
                price = Decimal(str(entry[self._vs_currency]))
            except InvalidOperation:
                logger.warning(
                    "CoinGecko: unparseable price %r for %s",
                    entry[self._vs_currency], coin_id,
                )
                continue
            if not price.is_finite() or price <= 0:
                logger.warning("CoinGecko: non-positive price %s for %s", price, coin_id)
                continue

            updated = entry.get("last_updated_at")
            if isinstance(updated, (int, float)):
                observed_at = datetime.fromtimestamp(updated, tz=timezone.utc)
            else:
                observed_at = datetime.now(timezone.utc)

            quotes[coin_id] = PriceQuote(coin_id=coin_id, price=price, observed_at=observed_at)
        return quotes

    def fetch_prices(self, coin_ids: set[str]) -> dict[str, PriceQuote]:
        """Fetch current prices for ``coin_ids``.

        Ids CoinGecko does not know are absent from the result. Any
        transport, HTTP or payload error fails the whole call.
        """
        if not coin_ids:
            return {}

        ordered = sorted(coin_ids)
        logger.info("CoinGecko: fetching prices for %d coins", len(ordered))

        result: dict[str, PriceQuote] = {}
        for start in range(0, len(ordered), self.max_ids_per_request):
            batch = ordered[start:start + self.max_ids_per_request]
            response = self._get(
                "/simple/price",
                params={
                    "ids": ",".join(batch),
                    "vs_currencies": self._vs_currency,
                    "include_last_updated_at": "true",
                },
            )
            try:
                # parse_float keeps the upstream digits exactly
                payload = response.json(parse_float=Decimal)
            except ValueError as e:
                raise ProviderDataError(
                    "CoinGecko: response body is not JSON",
                    provider_name=self.provider_name,
                ) from e
            result.update(self._parse_quotes(payload))

        requested = set(ordered)
        unknown = requested - result.keys()
        if unknown:
            logger.warning(
                "CoinGecko: %d of %d coins returned no price: %s",
                len(unknown), len(requested), ", ".join(sorted(unknown)),
            )
        return {coin_id: q for coin_id, q in result.items() if coin_id in requested}

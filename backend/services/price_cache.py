"""Price cache - freshness-bounded quotes with coalesced upstream fetches."""

import logging
import math
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from integrations.exceptions import ProviderError
from integrations.price_source_protocol import PartialPriceFailure, PriceQuote, PriceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CachedQuote:
    quote: PriceQuote
    fetched_at: float  # reading of the cache clock when stored


@dataclass(frozen=True)
class _PendingFetch:
    future: Future
    wait_timeout: float  # how long other callers may wait on this fetch


class PriceCache:
    """Holds the latest quote per coin and deduplicates upstream fetches.

    ``resolve`` serves fresh quotes from memory and sends every stale or
    unknown id to the price source in a single batched call. When several
    threads ask for the same stale id at once, only the first one fetches;
    the others wait on that fetch's future and receive the same result.

    The coalescing decision is serialized per coin id: each id has its
    own lock, held only while checking the cache and the in-flight table,
    never across the upstream call.
    """

    def __init__(
        self,
        source: PriceSource,
        ttl_seconds: float = 30.0,
        fetch_timeout: float = 10.0,
        ids_per_request: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            source: Upstream price source.
            ttl_seconds: How long a cached quote counts as fresh.
            fetch_timeout: Timeout of a single upstream request.
            ids_per_request: Largest batch the source sends in one
                request, if it splits large batches. Callers waiting on
                another caller's fetch allow one ``fetch_timeout`` per
                request that fetch may need, plus one more.
            clock: Monotonic time function (injectable for tests).
        """
        self._source = source
        self._ttl = ttl_seconds
        self._fetch_timeout = fetch_timeout
        self._ids_per_request = ids_per_request
        self._clock = clock
        self._quotes: dict[str, _CachedQuote] = {}
        self._in_flight: dict[str, _PendingFetch] = {}
        self._id_locks: dict[str, threading.Lock] = {}

    @property
    def source(self) -> PriceSource:
        return self._source

    def _lock_for(self, coin_id: str) -> threading.Lock:
        # dict.setdefault is atomic for str keys, so concurrent callers
        # always end up sharing one lock per id.
        return self._id_locks.setdefault(coin_id, threading.Lock())

    def _wait_budget(self, id_count: int) -> float:
        if self._ids_per_request:
            requests = math.ceil(id_count / self._ids_per_request)
        else:
            requests = 1
        return self._fetch_timeout * (requests + 1)

    def _is_fresh(self, entry: _CachedQuote, now: float) -> bool:
        return now - entry.fetched_at < self._ttl

    def resolve(self, coin_ids: Iterable[str]) -> dict[str, PriceQuote]:
        """Return a quote for every requested coin id.

        Args:
            coin_ids: Coin identifiers to price.

        Returns:
            Dict mapping each requested id to a fresh quote.

        Raises:
            PartialPriceFailure: one or more ids could not be priced. The
                exception's ``resolved`` map holds every quote that was.
        """
        requested = set(coin_ids)
        if not requested:
            return {}

        now = self._clock()
        resolved: dict[str, PriceQuote] = {}
        owned: dict[str, Future] = {}
        waiting: dict[str, _PendingFetch] = {}
        # Upper bound: this caller can own at most every requested id.
        budget = self._wait_budget(len(requested))

        for coin_id in sorted(requested):
            with self._lock_for(coin_id):
                entry = self._quotes.get(coin_id)
                if entry is not None and self._is_fresh(entry, now):
                    resolved[coin_id] = entry.quote
                    continue
                pending = self._in_flight.get(coin_id)
                if pending is not None:
                    waiting[coin_id] = pending
                else:
                    future: Future = Future()
                    self._in_flight[coin_id] = _PendingFetch(future, budget)
                    owned[coin_id] = future

        if owned:
            resolved.update(self._fetch_owned(owned))

        for coin_id, pending in waiting.items():
            quote = self._wait_for(coin_id, pending)
            if quote is not None:
                resolved[coin_id] = quote

        missing = requested - resolved.keys()
        if missing:
            raise PartialPriceFailure(missing, resolved)
        return resolved

    def _fetch_owned(self, owned: dict[str, Future]) -> dict[str, PriceQuote]:
        """Fetch the ids this caller registered and fan results out to waiters."""
        fetched: dict[str, PriceQuote] = {}
        try:
            logger.debug("Fetching %d stale coin prices upstream", len(owned))
            fetched = {
                coin_id: quote
                for coin_id, quote in self._source.fetch_prices(set(owned)).items()
                if coin_id in owned and quote.price > 0
            }
        except ProviderError as e:
            logger.warning(
                "Price fetch from %s failed for %d coins: %s",
                e.provider_name or "price source", len(owned), e,
            )
        except Exception:
            logger.exception("Price source raised unexpectedly for %d coins", len(owned))
        finally:
            stored_at = self._clock()
            for coin_id, future in owned.items():
                quote = fetched.get(coin_id)
                with self._lock_for(coin_id):
                    if quote is not None:
                        self._quotes[coin_id] = _CachedQuote(quote, stored_at)
                    # Expired quotes are kept on failure; see last_known().
                    self._in_flight.pop(coin_id, None)
                future.set_result(quote)
        return fetched

    def _wait_for(self, coin_id: str, pending: _PendingFetch) -> Optional[PriceQuote]:
        try:
            return pending.future.result(timeout=pending.wait_timeout)
        except FutureTimeoutError:
            logger.warning("Timed out waiting for in-flight price fetch of %s", coin_id)
            return None

    def last_known(self, coin_id: str) -> Optional[PriceQuote]:
        """Return the most recent quote for ``coin_id``, fresh or not.

        Falling back to an expired quote is a caller policy; ``resolve``
        never does it.
        """
        entry = self._quotes.get(coin_id)
        return entry.quote if entry is not None else None

    def invalidate(self, coin_ids: Optional[Iterable[str]] = None) -> None:
        """Force the next ``resolve`` to refetch ``coin_ids`` (all if None).

        Invalidated quotes remain available through ``last_known``.
        """
        targets = list(self._quotes) if coin_ids is None else list(coin_ids)
        for coin_id in targets:
            with self._lock_for(coin_id):
                entry = self._quotes.get(coin_id)
                if entry is not None:
                    self._quotes[coin_id] = _CachedQuote(entry.quote, float("-inf"))

    def clear(self) -> None:
        """Drop every cached quote."""
        for coin_id in list(self._quotes):
            with self._lock_for(coin_id):
                self._quotes.pop(coin_id, None)

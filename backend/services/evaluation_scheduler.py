"""Evaluation scheduler - drives valuation and alert cycles.

One cycle:

1. Read every holding and every armed alert (or one user's, on demand).
2. Resolve the union of their coin ids through the price cache, once.
3. Value each user's holdings and append a snapshot, one worker per user.
4. Evaluate all alerts against the same prices; persist each trigger and
   then notify, one worker per transition.

Failures stay inside their unit of work: a user whose valuation raises,
or an alert whose trigger cannot be saved, is reported and skipped while
the rest of the cycle carries on. Work left when the soft deadline passes
is abandoned and picked up again by the next cycle.
"""

import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from integrations.notification_protocol import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from integrations.price_source_protocol import PartialPriceFailure, PriceQuote
from services.alert_evaluator import AlertEvaluator, AlertSummary, AlertTransition, InvalidAlertError
from services.price_cache import PriceCache
from services.repositories import (
    AlertRepository,
    HoldingRepository,
    SnapshotRecord,
    SnapshotRepository,
)
from services.valuation_engine import HoldingSummary, PortfolioValue, ValuationEngine

logger = logging.getLogger(__name__)

CYCLE_JOB_ID = "evaluation-cycle"


class CycleTimeout(Exception):
    """A cycle's soft deadline passed with work still outstanding."""

    def __init__(self, abandoned: int):
        self.abandoned = abandoned
        super().__init__(f"cycle deadline passed, {abandoned} unit(s) of work abandoned")


@dataclass
class CycleReport:
    """Outcome of one evaluation cycle."""

    started_at: datetime
    user_id: Optional[str] = None
    finished_at: Optional[datetime] = None
    coins_requested: int = 0
    missing_coin_ids: set[str] = field(default_factory=set)
    users_valued: int = 0
    snapshots_written: int = 0
    alerts_evaluated: int = 0
    transitions: list[AlertTransition] = field(default_factory=list)
    notifications_sent: int = 0
    errors: list[str] = field(default_factory=list)
    timed_out: bool = False
    price_source_failed: bool = False
    valuations: dict[str, PortfolioValue] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        """True when the cycle could not cover everything it was asked to."""
        return (
            self.price_source_failed
            or self.timed_out
            or bool(self.missing_coin_ids)
            or bool(self.errors)
        )


@dataclass
class _ValuationOutcome:
    user_id: str
    value: PortfolioValue
    snapshot_written: bool


@dataclass
class _TransitionOutcome:
    transition: AlertTransition
    applied: bool
    notified: bool


class EvaluationScheduler:
    """Runs evaluation cycles periodically or on demand.

    ``start()``/``stop()`` control a background APScheduler job that calls
    ``run_cycle()`` every ``interval_seconds``. Tests and the API call
    ``run_cycle()`` or ``refresh_user()`` directly.
    """

    def __init__(
        self,
        price_cache: PriceCache,
        holding_repository: HoldingRepository,
        alert_repository: AlertRepository,
        snapshot_repository: SnapshotRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        valuation_engine: Optional[ValuationEngine] = None,
        alert_evaluator: Optional[AlertEvaluator] = None,
        interval_seconds: float = 60.0,
        deadline_seconds: float = 45.0,
        max_workers: int = 4,
        stale_price_fallback: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._price_cache = price_cache
        self._holdings = holding_repository
        self._alerts = alert_repository
        self._snapshots = snapshot_repository
        self._dispatcher = dispatcher or LoggingNotificationDispatcher()
        self._valuation_engine = valuation_engine or ValuationEngine()
        self._alert_evaluator = alert_evaluator or AlertEvaluator()
        self._interval = interval_seconds
        self._deadline = deadline_seconds
        self._max_workers = max_workers
        self._stale_price_fallback = stale_price_fallback
        self._clock = clock

        self._scheduler: Optional[BackgroundScheduler] = None
        self._state_lock = threading.Lock()
        self._last_report: Optional[CycleReport] = None

    # -- lifecycle ---------------------------------------------------------

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._scheduler is not None and self._scheduler.running

    @property
    def last_report(self) -> Optional[CycleReport]:
        with self._state_lock:
            return self._last_report

    def start(self) -> None:
        """Start periodic cycles. The first one runs immediately."""
        with self._state_lock:
            if self._scheduler is not None and self._scheduler.running:
                return
            scheduler = BackgroundScheduler(timezone=timezone.utc)
            scheduler.add_job(
                self._run_scheduled_cycle,
                "interval",
                seconds=self._interval,
                id=CYCLE_JOB_ID,
                max_instances=1,
                coalesce=True,
                next_run_time=datetime.now(timezone.utc),
            )
            scheduler.start()
            self._scheduler = scheduler
        logger.info("Evaluation scheduler started (every %.0fs)", self._interval)

    def stop(self, wait: bool = True) -> None:
        """Stop periodic cycles, optionally waiting for a running one."""
        with self._state_lock:
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=wait)
            logger.info("Evaluation scheduler stopped")

    def close(self) -> None:
        """Stop cycles and release the price source's connections."""
        self.stop()
        self._price_cache.source.close()

    def _run_scheduled_cycle(self) -> None:
        try:
            self.run_cycle()
        except Exception:
            logger.exception("Evaluation cycle failed")

    # -- cycles ------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        """Run one full cycle over every user and wait for it to finish."""
        return self._run(user_id=None, persist_snapshots=True)

    def refresh_user(self, user_id: str, persist_snapshot: bool = False) -> CycleReport:
        """Run a cycle limited to one user's holdings and armed alerts."""
        return self._run(user_id=user_id, persist_snapshots=persist_snapshot)

    def _run(self, user_id: Optional[str], persist_snapshots: bool) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc), user_id=user_id)
        deadline = self._clock() + self._deadline

        try:
            holdings = self._holdings.list_holdings(user_id)
            alerts = self._alerts.list_armed_alerts(user_id)
        except Exception as e:
            logger.exception("Could not load holdings/alerts for cycle")
            report.errors.append(f"load failed: {e}")
            return self._finish(report)

        report.alerts_evaluated = len(alerts)
        coin_ids = {h.coin_id for h in holdings} | {a.coin_id for a in alerts}
        report.coins_requested = len(coin_ids)
        prices = self._resolve_prices(coin_ids, report)

        holdings_by_user: dict[str, list[HoldingSummary]] = defaultdict(list)
        for holding in holdings:
            holdings_by_user[holding.user_id].append(holding)
        if user_id is not None:
            holdings_by_user.setdefault(user_id, [])

        valuation_prices, stale_ids = self._valuation_prices(prices, report.missing_coin_ids)
        transitions = self._evaluate_alerts(alerts, prices, report)

        pool = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="evaluation"
        )
        units: dict[Future, str] = {}
        try:
            for uid, user_holdings in holdings_by_user.items():
                future = pool.submit(
                    self._value_user,
                    uid,
                    user_holdings,
                    valuation_prices,
                    stale_ids,
                    persist_snapshots and bool(user_holdings),
                    report.started_at,
                )
                units[future] = f"user {uid}"
            for transition in transitions:
                future = pool.submit(self._commit_transition, transition)
                units[future] = f"alert {transition.alert_id}"

            self._await_units(units, deadline)
        except CycleTimeout as e:
            logger.warning("Evaluation cycle: %s", e)
            report.timed_out = True
            report.errors.append(str(e))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        self._collect(units, report)
        return self._finish(report)

    def _finish(self, report: CycleReport) -> CycleReport:
        report.finished_at = datetime.now(timezone.utc)
        if report.user_id is None:
            with self._state_lock:
                self._last_report = report
        log = logger.warning if report.degraded else logger.info
        log(
            "Cycle finished: %d coins (%d missing), %d users valued, "
            "%d alerts evaluated, %d triggered, %d errors%s",
            report.coins_requested,
            len(report.missing_coin_ids),
            report.users_valued,
            report.alerts_evaluated,
            len(report.transitions),
            len(report.errors),
            " (timed out)" if report.timed_out else "",
        )
        return report

    def _resolve_prices(
        self, coin_ids: set[str], report: CycleReport
    ) -> dict[str, PriceQuote]:
        if not coin_ids:
            return {}
        try:
            return self._price_cache.resolve(coin_ids)
        except PartialPriceFailure as e:
            report.missing_coin_ids = set(e.missing)
            if not e.resolved:
                report.price_source_failed = True
            logger.warning(
                "Continuing cycle without prices for %d of %d coins: %s",
                len(e.missing), len(coin_ids), ", ".join(sorted(e.missing)),
            )
            return e.resolved
        except Exception as e:
            logger.exception("Price resolution failed")
            report.price_source_failed = True
            report.missing_coin_ids = set(coin_ids)
            report.errors.append(f"price resolution failed: {e}")
            return {}

    def _valuation_prices(
        self, prices: dict[str, PriceQuote], missing: set[str]
    ) -> tuple[dict[str, PriceQuote], frozenset[str]]:
        """Prices used for valuation, optionally patched with last-known quotes.

        Alert evaluation always uses ``prices`` as resolved; an expired
        quote never triggers an alert.
        """
        if not self._stale_price_fallback or not missing:
            return prices, frozenset()
        patched = dict(prices)
        stale: set[str] = set()
        for coin_id in missing:
            quote = self._price_cache.last_known(coin_id)
            if quote is not None:
                patched[coin_id] = quote
                stale.add(coin_id)
        if stale:
            logger.info("Valuing %d coins with last-known prices", len(stale))
        return patched, frozenset(stale)

    def _evaluate_alerts(
        self,
        alerts: list[AlertSummary],
        prices: dict[str, PriceQuote],
        report: CycleReport,
    ) -> list[AlertTransition]:
        transitions: list[AlertTransition] = []
        for alert in alerts:
            try:
                transition = self._alert_evaluator.evaluate_one(alert, prices)
            except InvalidAlertError as e:
                logger.error("Skipping invalid alert %s: %s", alert.id, e)
                report.errors.append(f"alert {alert.id}: {e}")
                continue
            except Exception as e:
                logger.exception("Alert %s evaluation failed", alert.id)
                report.errors.append(f"alert {alert.id}: {e}")
                continue
            if transition is not None:
                transitions.append(transition)
        transitions.sort(key=lambda t: t.alert_id)
        return transitions

    def _value_user(
        self,
        user_id: str,
        holdings: list[HoldingSummary],
        prices: dict[str, PriceQuote],
        stale_ids: frozenset[str],
        persist_snapshot: bool,
        taken_at: datetime,
    ) -> _ValuationOutcome:
        value = self._valuation_engine.value(holdings, prices, stale_ids)
        written = False
        # A snapshot with no priced holding at all would record a fake zero
        priced = any(not h.price_unavailable for h in value.holdings)
        if persist_snapshot and priced:
            self._snapshots.append_snapshot(
                SnapshotRecord(
                    user_id=user_id,
                    total_value=value.total_value,
                    taken_at=taken_at,
                    is_partial=value.is_partial,
                )
            )
            written = True
        return _ValuationOutcome(user_id=user_id, value=value, snapshot_written=written)

    def _commit_transition(self, transition: AlertTransition) -> _TransitionOutcome:
        """Persist a trigger, then send its single notification.

        If persisting fails the exception propagates and nothing is sent;
        the alert stays armed and is evaluated again next cycle.
        """
        applied = self._alerts.apply_transition(transition)
        if not applied:
            return _TransitionOutcome(transition, applied=False, notified=False)
        try:
            self._dispatcher.notify(transition.user_id, transition)
        except Exception:
            logger.exception(
                "Notification for alert %s failed; not retried", transition.alert_id
            )
            return _TransitionOutcome(transition, applied=True, notified=False)
        return _TransitionOutcome(transition, applied=True, notified=True)

    def _await_units(self, units: dict[Future, str], deadline: float) -> None:
        if not units:
            return
        remaining = max(0.0, deadline - self._clock())
        _, not_done = wait(units, timeout=remaining)
        if not_done:
            for future in not_done:
                future.cancel()
            raise CycleTimeout(len(not_done))

    def _collect(self, units: dict[Future, str], report: CycleReport) -> None:
        for future, label in units.items():
            if not future.done() or future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                logger.error("Evaluation of %s failed: %s", label, error, exc_info=error)
                report.errors.append(f"{label}: {error}")
                continue
            outcome = future.result()
            if isinstance(outcome, _ValuationOutcome):
                report.users_valued += 1
                report.valuations[outcome.user_id] = outcome.value
                if outcome.snapshot_written:
                    report.snapshots_written += 1
            elif outcome.applied:
                report.transitions.append(outcome.transition)
                if outcome.notified:
                    report.notifications_sent += 1
        report.transitions.sort(key=lambda t: t.alert_id)


@lru_cache
def get_evaluation_scheduler() -> EvaluationScheduler:
    """Process-wide scheduler wired to CoinGecko and the application database."""
    from database import get_session_local
    from integrations.coingecko_client import CoinGeckoClient
    from services.repositories import (
        SqlAlertRepository,
        SqlHoldingRepository,
        SqlSnapshotRepository,
    )

    session_factory = get_session_local()
    source = CoinGeckoClient(
        api_key=settings.COINGECKO_API_KEY or None,
        vs_currency=settings.QUOTE_CURRENCY,
        timeout=settings.PRICE_FETCH_TIMEOUT_SECONDS,
    )
    cache = PriceCache(
        source,
        ttl_seconds=settings.PRICE_CACHE_TTL_SECONDS,
        fetch_timeout=settings.PRICE_FETCH_TIMEOUT_SECONDS,
        ids_per_request=source.max_ids_per_request,
    )
    return EvaluationScheduler(
        price_cache=cache,
        holding_repository=SqlHoldingRepository(session_factory),
        alert_repository=SqlAlertRepository(session_factory),
        snapshot_repository=SqlSnapshotRepository(session_factory),
        interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
        deadline_seconds=settings.CYCLE_DEADLINE_SECONDS,
        max_workers=settings.SCHEDULER_MAX_WORKERS,
        stale_price_fallback=settings.STALE_PRICE_FALLBACK,
    )


def close_evaluation_scheduler() -> None:
    """Close the process-wide scheduler if it was ever built."""
    if get_evaluation_scheduler.cache_info().currsize == 0:
        return
    get_evaluation_scheduler().close()
    get_evaluation_scheduler.cache_clear()

"""
Scan orchestration for cross-DEX pair arbitrage.

One scan pass evaluates every unordered exchange pair in both directions,
stores every completed simulation and refreshes the daily metrics. The
scheduler fires passes on a fixed interval and never lets two overlap.
"""

import asyncio
import time
from dataclasses import dataclass, field
from itertools import combinations
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from pair_arbitrage.exceptions import PersistenceFailure
from pair_arbitrage.scheduling import SingleFlight
from pair_arbitrage.utils import (
    format_duration,
    get_current_timestamp_ms,
    get_logger,
    utc_date_from_ms,
)

from .config import ScannerConfig
from .reader import ExchangeReader, PoolStateSource
from .simulator import ArbitrageSimulator
from .store import ResultStore
from .types import DailyMetric, ExchangeDescriptor, SimulationResult

logger = get_logger(__name__)

ExchangePair = Tuple[ExchangeDescriptor, ExchangeDescriptor]


@dataclass
class ScanSummary:
    """What one scan pass did."""

    scan_num: int
    pairs_total: int = 0
    pairs_evaluated: int = 0
    pairs_skipped: int = 0
    directions_failed: int = 0
    records_written: int = 0
    persistence_failures: int = 0
    profitable: List[SimulationResult] = field(default_factory=list)
    daily_metric: Optional[DailyMetric] = None
    duration_sec: float = 0.0

    @property
    def stopped_early(self) -> bool:
        return self.pairs_skipped > 0


class ScanOrchestrator:
    """
    Runs scan passes over all exchange pairs.

    Failures are isolated per direction: a venue that cannot be read only
    removes the records that involve it from the pass.
    """

    def __init__(
        self,
        config: ScannerConfig,
        simulator: ArbitrageSimulator,
        store: ResultStore,
        clock_ms: Callable[[], int] = get_current_timestamp_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.simulator = simulator
        self.store = store
        self._clock_ms = clock_ms
        self._sleep = sleep
        self.scan_count = 0

    def exchange_pairs(self) -> List[ExchangePair]:
        """Every unordered pair of distinct exchanges, in config order."""
        return list(combinations(self.config.exchanges, 2))

    async def run_pass(self, stop_event: Optional[asyncio.Event] = None) -> ScanSummary:
        """
        Run one full scan pass.

        Pairs that have not started when ``stop_event`` is set are skipped;
        the daily metric is still refreshed for whatever was written.
        """
        self.scan_count += 1
        summary = ScanSummary(scan_num=self.scan_count)
        started = time.monotonic()

        pairs = self.exchange_pairs()
        summary.pairs_total = len(pairs)
        logger.info(f"Starting arbitrage scan #{summary.scan_num} ({len(pairs)} exchange pairs)")

        touched_dates: Set[str] = set()
        semaphore = asyncio.Semaphore(self.config.pair_concurrency)
        last_index = len(pairs) - 1

        async def evaluate(index: int, pair: ExchangePair) -> None:
            async with semaphore:
                if stop_event is not None and stop_event.is_set():
                    summary.pairs_skipped += 1
                    return

                await self._evaluate_pair(pair, summary, touched_dates)

                # Throttle between pair evaluations to spare the RPC endpoint
                stopping = stop_event is not None and stop_event.is_set()
                if index < last_index and self.config.pair_delay_sec > 0 and not stopping:
                    await self._sleep(self.config.pair_delay_sec)

        await asyncio.gather(*(evaluate(i, pair) for i, pair in enumerate(pairs)))

        await self._summarize(touched_dates, summary)

        summary.duration_sec = time.monotonic() - started
        logger.info(
            f"Arbitrage scan #{summary.scan_num} completed in {format_duration(summary.duration_sec)}: "
            f"{summary.records_written} records, {len(summary.profitable)} profitable, "
            f"{summary.directions_failed} failed directions"
            + (f", {summary.pairs_skipped} pairs skipped" if summary.pairs_skipped else "")
        )
        return summary

    async def run_pass_safely(
        self, stop_event: Optional[asyncio.Event] = None
    ) -> Optional[ScanSummary]:
        """Run a pass; any error is logged and swallowed so the schedule keeps going."""
        try:
            return await self.run_pass(stop_event)
        except Exception as e:
            logger.error(f"Scan #{self.scan_count} failed: {e}", exc_info=True)
            return None

    async def _evaluate_pair(
        self, pair: ExchangePair, summary: ScanSummary, touched_dates: Set[str]
    ) -> None:
        a, b = pair
        trade_size = self.config.trade_size
        directions = ((a, b), (b, a))

        outcomes = await asyncio.gather(
            *(self.simulator.simulate(buy, sell, trade_size) for buy, sell in directions),
            return_exceptions=True,
        )
        summary.pairs_evaluated += 1

        for (buy, sell), outcome in zip(directions, outcomes):
            if isinstance(outcome, Exception):
                summary.directions_failed += 1
                logger.error(
                    f"Arbitrage simulation {buy.id} -> {sell.id} failed: {outcome}"
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            await self._persist(outcome, summary, touched_dates)

    async def _persist(
        self, result: SimulationResult, summary: ScanSummary, touched_dates: Set[str]
    ) -> None:
        timestamp = self._clock_ms()
        record = result.to_scan_record(timestamp, self.config.pair_name)

        try:
            await self.store.insert_scan(record)
        except PersistenceFailure as e:
            summary.persistence_failures += 1
            logger.error(f"Scan record {record.direction} not stored: {e}")
        else:
            summary.records_written += 1
            touched_dates.add(utc_date_from_ms(timestamp))

        if result.profitable:
            summary.profitable.append(result)
            base = self.config.base_token.symbol
            logger.info(
                f"PROFITABLE OPPORTUNITY: buy {result.trade_size} {base} @ "
                f"{result.buy_exchange} (${float(result.buy_price):.2f}), sell @ "
                f"{result.sell_exchange} (${float(result.sell_price):.2f}) | "
                f"net ${float(result.net_profit):.2f} "
                f"({float(result.price_spread_pct):.3f}% spread)"
            )

    async def _summarize(self, touched_dates: Set[str], summary: ScanSummary) -> None:
        today = utc_date_from_ms(self._clock_ms())
        for date in sorted(touched_dates | {today}):
            try:
                metric = await self.store.upsert_daily_metric(date)
            except PersistenceFailure as e:
                logger.error(f"Daily metrics for {date} not updated: {e}")
                continue
            if date == today:
                summary.daily_metric = metric


class ScanScheduler:
    """
    Fires scan passes every ``interval_sec``.

    A pass holds a single-flight token while it runs. Triggers that arrive
    while the token is held are dropped, not queued.
    """

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        interval_sec: float,
        once: bool = False,
    ):
        self.orchestrator = orchestrator
        self.interval_sec = interval_sec
        self.once = once
        self.guard = SingleFlight("scan")
        self._stop = asyncio.Event()
        self._current: Optional[asyncio.Task] = None

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Stop scheduling; the in-flight pass finishes its current pair."""
        if not self._stop.is_set():
            logger.info("Shutdown requested, finishing in-flight scan...")
        self._stop.set()

    def trigger(self) -> bool:
        """
        Start a pass in the background unless one is already running.

        Returns:
            True if a pass was started
        """
        if not self.guard.try_acquire():
            logger.debug(
                f"Scan still running, dropping trigger ({self.guard.dropped} dropped so far)"
            )
            return False

        self._current = asyncio.create_task(self._run_and_release())
        return True

    async def _run_and_release(self) -> Optional[ScanSummary]:
        try:
            return await self.orchestrator.run_pass_safely(self._stop)
        finally:
            self.guard.release()

    async def run_forever(self) -> None:
        """Trigger passes until stop() is called (or after one pass with once=True)."""
        logger.info(
            f"Scheduling scans every {self.interval_sec:g}s across "
            f"{len(self.orchestrator.config.exchanges)} exchanges"
        )

        if self.once:
            if self.trigger():
                await self._current
            return

        while not self._stop.is_set():
            self.trigger()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_sec)
            except asyncio.TimeoutError:
                pass

        if self._current is not None and not self._current.done():
            await self._current
        logger.info("Scan scheduler stopped")


def build_orchestrator(
    config: ScannerConfig, source: PoolStateSource, store: ResultStore
) -> ScanOrchestrator:
    """Wire reader, simulator and orchestrator from one config value."""
    reader = ExchangeReader(
        source,
        config.base_token,
        config.quote_token,
        retry_policy=config.retry_policy(),
        store=store,
    )
    simulator = ArbitrageSimulator(
        reader,
        gas_usd_per_leg=config.gas_usd_per_leg,
        min_profit_threshold=config.min_profit_threshold,
    )
    return ScanOrchestrator(config, simulator, store)

"""
Aggregation orchestrator coordinating one fetch, match, price and publish cycle.
"""
import logging
import threading
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional

from .cross_reference import resolve_references
from .fetcher import Fetcher
from .matcher import ReservationMatcher
from .models import AdvisorCheck, AdvisorResult, FetchOutcome, Resource, Snapshot
from .pricing import PricingProvider, apply_pricing
from ..state.history import HistoryStore
from ..state.snapshot_state import SnapshotState, SnapshotView


logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10

# Resource kinds in index insertion order; a later kind wins an id collision.
INDEXED_KINDS = (
    'reservations', 'running_units', 'load_balancers', 'databases', 'domain_records',
    'volumes', 'caches', 'subnets', 'spot_requests', 'stacks',
)


class AggregationOrchestrator:
    """Runs inventory cycles against injected fetcher, pricing and history collaborators.

    Owns the worker pool used for outbound fetches and guarantees that at most
    one cycle runs at a time. Failures never propagate to the caller; they are
    recorded on :attr:`state` and the previously published snapshot is kept.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        pricing_provider: PricingProvider,
        history_store: HistoryStore,
        state: Optional[SnapshotState] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        use_advisor: bool = True,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Source of every resource kind
            pricing_provider: Hourly rates for running units
            history_store: Receives one summary row per successful cycle
            state: Snapshot state to publish into; a new one is created if None
            max_workers: Maximum number of concurrent fetches
            use_advisor: Whether to fetch Trusted Advisor results
            clock: Source of snapshot timestamps
        """
        self.fetcher = fetcher
        self.pricing_provider = pricing_provider
        self.history_store = history_store
        self.state = state or SnapshotState()
        self.view = SnapshotView(self.state)
        self.use_advisor = use_advisor
        self.matcher = ReservationMatcher()
        self.clock = clock

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='fetcher')
        self._cycle_lock = threading.Lock()
        self._advisor_checks: List[AdvisorCheck] = []
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    def run_cycle(self) -> bool:
        """Run one cycle in the calling thread.

        Returns:
            True if a new snapshot was published and persisted, False if the
            cycle failed or another cycle was already running
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Cycle already in progress - ignoring refresh request")
            return False
        return self._run_locked_cycle()

    def trigger_refresh(self) -> bool:
        """Start a cycle in the background unless one is already running.

        Returns:
            True if a cycle was started
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Cycle already in progress - refresh request dropped")
            return False
        thread = threading.Thread(target=self._run_locked_cycle, name='refresh', daemon=True)
        thread.start()
        return True

    def start_periodic(self, interval_seconds: float) -> None:
        """Run a cycle now and then every ``interval_seconds`` on a daemon thread."""
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return
        self._stop_event.clear()

        def loop():
            while True:
                self.run_cycle()
                if self._stop_event.wait(interval_seconds):
                    break

        self._timer_thread = threading.Thread(target=loop, name='update-timer', daemon=True)
        self._timer_thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the periodic timer; an in-flight cycle is allowed to finish."""
        self._stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)
            self._timer_thread = None

    def shutdown(self) -> None:
        self.stop()
        self._executor.shutdown(wait=True)

    def _run_locked_cycle(self) -> bool:
        """Body of a cycle; the caller must already hold the cycle lock."""
        try:
            self.state.begin_cycle()
            logger.info("Updating inventory")
            start_time = datetime.now()
            try:
                snapshot = self._build_snapshot()
                self.state.publish(snapshot)
                self.history_store.persist(SnapshotView(self.state, snapshot).summary_row())
            except Exception as e:
                logger.exception("Error occurred during inventory update")
                self.state.fail(str(e) or e.__class__.__name__)
                return False

            duration = (datetime.now() - start_time).total_seconds()
            logger.info(f"Update completed in {duration:.1f}s")
            return True
        finally:
            self._cycle_lock.release()

    def _fetch_tasks(self) -> Dict[str, Callable[[], Any]]:
        tasks = {
            'reservations': self.fetcher.get_reserved_capacity,
            'running_units': self.fetcher.get_running_units,
            'load_balancers': self.fetcher.get_load_balancers,
            'databases': self.fetcher.get_databases,
            'domain_records': self.fetcher.get_domain_records,
            'volumes': self.fetcher.get_volumes,
            'caches': self.fetcher.get_caches,
            'subnets': self.fetcher.get_subnets,
            'spot_requests': self.fetcher.get_spot_requests,
            'stacks': self.fetcher.get_stacks,
        }
        if self.use_advisor:
            tasks['advisor_results'] = self._fetch_advisor_results
        return tasks

    def _fetch_advisor_results(self) -> FetchOutcome[AdvisorResult]:
        # checks rarely change, so they are only listed until some account returns them
        if not self._advisor_checks:
            checks = self.fetcher.get_advisor_checks()
            if checks.skipped:
                logger.warning(f"Trusted Advisor checks unavailable: {checks.skipped_reason}")
            self._advisor_checks = checks.records
        if not self._advisor_checks:
            return FetchOutcome.skip("No Trusted Advisor checks available")
        return self.fetcher.get_advisor_results(self._advisor_checks)

    def _fetch_all(self) -> Dict[str, List[Any]]:
        """Fan out every fetch to the pool and wait for all of them to finish.

        Raises:
            Exception: The failure of the first failed fetch, in task order
        """
        tasks = self._fetch_tasks()
        futures: Dict[str, Future] = {
            kind: self._executor.submit(task) for kind, task in tasks.items()
        }
        wait(futures.values(), return_when=ALL_COMPLETED)

        results: Dict[str, List[Any]] = {}
        failures = []
        for kind, future in futures.items():
            error = future.exception()
            if error is not None:
                logger.error(f"Fetch failed for {kind}: {error}")
                failures.append(error)
                continue

            records = future.result()
            if isinstance(records, FetchOutcome):
                if records.skipped:
                    logger.warning(f"Optional fetch {kind} skipped: {records.skipped_reason}")
                records = records.records
            results[kind] = list(records)
            logger.info(f"Fetched {len(records)} {kind}")

        if failures:
            raise failures[0]
        return results

    def _build_snapshot(self) -> Snapshot:
        """Fetch, index, cross-reference, match and price a private snapshot."""
        results = self._fetch_all()

        index: Dict[str, Resource] = {}
        for kind in INDEXED_KINDS:
            for resource in results[kind]:
                if resource.id in index:
                    logger.debug(f"Duplicate id {resource.id} in {kind} replaces earlier entry")
                index[resource.id] = resource

        resolve_references(index)
        self.matcher.match(results['reservations'], results['running_units'])
        apply_pricing(results['running_units'], self.pricing_provider)

        return Snapshot(
            timestamp=self.clock(),
            reservations=tuple(results['reservations']),
            running_units=tuple(results['running_units']),
            load_balancers=tuple(results['load_balancers']),
            databases=tuple(results['databases']),
            domain_records=tuple(results['domain_records']),
            volumes=tuple(results['volumes']),
            caches=tuple(results['caches']),
            subnets=tuple(results['subnets']),
            spot_requests=tuple(results['spot_requests']),
            stacks=tuple(results['stacks']),
            advisor_results=tuple(results.get('advisor_results', [])),
            index=MappingProxyType(index),
        )

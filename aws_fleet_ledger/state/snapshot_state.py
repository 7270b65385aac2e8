"""
Published snapshot, cycle status and the read-side view computed from them.
"""
import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from ..core.exceptions import StateError
from ..services.models import HistoryRow, ReservedCapacity, RunningUnit, Snapshot

logger = logging.getLogger(__name__)

REFRESHING = "(Refreshing now)"
NEVER_REFRESHED = "(Never refreshed)"


class CycleStatus(Enum):
    IDLE = "idle"
    UPDATING = "updating"
    ERROR = "error"


class SnapshotState:
    """Holds the last successfully published snapshot and the cycle status.

    The snapshot is replaced by a single reference assignment, so a reader that
    takes ``state.snapshot`` once sees either the previous or the next complete
    snapshot. The error message survives an ``UPDATING`` phase and is only
    cleared by a successful publish.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._status = CycleStatus.IDLE
        self._error_message: Optional[str] = None
        self._ready = threading.Event()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def status(self) -> CycleStatus:
        return self._status

    @property
    def updating(self) -> bool:
        return self._status is CycleStatus.UPDATING

    @property
    def in_error(self) -> bool:
        return self._error_message is not None

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def begin_cycle(self) -> None:
        """Enter UPDATING.

        Raises:
            StateError: If a cycle is already in progress
        """
        with self._lock:
            if self._status is CycleStatus.UPDATING:
                raise StateError("A cycle is already in progress")
            self._status = CycleStatus.UPDATING

    def publish(self, snapshot: Snapshot) -> None:
        """Swap in a complete snapshot and return to IDLE, clearing any error."""
        with self._lock:
            self._snapshot = snapshot
            self._status = CycleStatus.IDLE
            self._error_message = None
        self._ready.set()
        logger.info(f"Published snapshot from {snapshot.timestamp.isoformat()}")

    def fail(self, message: str) -> None:
        """Enter ERROR keeping the previous snapshot published."""
        with self._lock:
            self._status = CycleStatus.ERROR
            self._error_message = message
        self._ready.set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the first cycle has finished, successfully or not."""
        return self._ready.wait(timeout)


class SnapshotView:
    """Aggregate counts, percentages and lists computed on demand from the published snapshot."""

    def __init__(self, state: SnapshotState, snapshot: Optional[Snapshot] = None):
        """
        Args:
            state: State whose published snapshot is read on every call
            snapshot: Pin the view to this snapshot instead
        """
        self.state = state
        self._pinned = snapshot

    def _snapshot(self) -> Snapshot:
        return self._pinned or self.state.snapshot or Snapshot.empty()

    def pinned(self) -> 'SnapshotView':
        """A view fixed to the snapshot published right now."""
        return SnapshotView(self.state, self._snapshot())

    def last_refresh_time(self) -> str:
        if self.state.updating:
            return REFRESHING
        snapshot = self._pinned or self.state.snapshot
        if snapshot is None:
            return NEVER_REFRESHED
        return snapshot.timestamp.isoformat()

    def refresh_available(self) -> bool:
        return not self.state.updating

    def in_error(self) -> bool:
        return self.state.in_error

    def error_message(self) -> Optional[str]:
        return self.state.error_message

    # resource lists

    def instances(self) -> List[RunningUnit]:
        return list(self._snapshot().running_units)

    def reservations(self) -> List[ReservedCapacity]:
        return list(self._snapshot().reservations)

    def unmatched_reservations(self) -> List[ReservedCapacity]:
        return [r for r in self._snapshot().reservations if r.unused_capacity() > 0]

    def matched_reservations(self) -> List[ReservedCapacity]:
        return [r for r in self._snapshot().reservations if r.unused_capacity() == 0]

    def load_balancers(self):
        return list(self._snapshot().load_balancers)

    def databases(self):
        return list(self._snapshot().databases)

    def domain_records(self):
        return list(self._snapshot().domain_records)

    def volumes(self):
        return list(self._snapshot().volumes)

    def caches(self):
        return list(self._snapshot().caches)

    def subnets(self):
        return list(self._snapshot().subnets)

    def stacks(self):
        return list(self._snapshot().stacks)

    def advisor_results(self):
        return list(self._snapshot().advisor_results)

    # counts

    def instance_count(self) -> int:
        return len(self._snapshot().running_units)

    def running_count(self) -> int:
        return sum(1 for u in self._snapshot().running_units if u.is_running)

    def vpc_count(self) -> int:
        return sum(1 for u in self._snapshot().running_units if u.is_vpc)

    def reserved_count(self) -> int:
        return sum(r.matched_count() for r in self._snapshot().reservations)

    def unmatched_count(self) -> int:
        return sum(r.unmatched_count for r in self._snapshot().reservations)

    def total_reserved_units(self) -> float:
        return sum(r.capacity for r in self._snapshot().reservations)

    def used_reserved_units(self) -> float:
        return sum(r.used_capacity() for r in self._snapshot().reservations)

    # percentages of (instances + unused reservations), for stacked bars

    def _percentage(self, count: Callable[['SnapshotView'], int]) -> int:
        view = self.pinned()
        denominator = view.instance_count() + view.unmatched_count()
        if denominator == 0:
            return 0
        return (count(view) * 100) // denominator

    def instance_pct(self) -> int:
        return self._percentage(SnapshotView.instance_count)

    def running_pct(self) -> int:
        return self._percentage(SnapshotView.running_count)

    def reserved_pct(self) -> int:
        return self._percentage(SnapshotView.reserved_count)

    def unmatched_pct(self) -> int:
        return self._percentage(SnapshotView.unmatched_count)

    def vpc_pct(self) -> int:
        return self._percentage(SnapshotView.vpc_count)

    # cost

    def total_cost_per_hour(self) -> float:
        return sum(u.price for u in self._snapshot().running_units if u.is_running)

    def formatted_cost(self) -> str:
        return f"{self.total_cost_per_hour():.2f}"

    def summary_row(self) -> HistoryRow:
        """The history row describing the published snapshot."""
        view = self.pinned()
        snapshot = view._snapshot()
        return HistoryRow(
            timestamp=snapshot.timestamp,
            load_balancer_count=len(snapshot.load_balancers),
            reserved_total=view.total_reserved_units(),
            reserved_used=view.used_reserved_units(),
            instance_count=view.instance_count(),
            running_count=view.running_count(),
            vpc_count=view.vpc_count(),
            database_count=len(snapshot.databases),
            domain_record_count=len(snapshot.domain_records),
            volume_count=len(snapshot.volumes),
            total_cost=round(view.total_cost_per_hour(), 4),
        )

    # helpers for command line output

    def instances_for_load_balancer(self, name: str) -> Optional[List[str]]:
        """``host:port`` for every instance behind the named load balancer, or None if unknown."""
        load_balancer = next((lb for lb in self._snapshot().load_balancers if lb.name == name), None)
        if load_balancer is None:
            return None
        port = load_balancer.http_port or load_balancer.https_port
        return [f"{unit.public_dns_name}:{port}" for unit in load_balancer.instances]

    def ssh_config(self, account: Optional[str] = None) -> str:
        """OpenSSH config stanzas for running Linux instances that have a key pair."""
        entries = []
        for unit in self._snapshot().running_units:
            if not unit.is_running or unit.platform == 'Windows' or unit.key_name is None:
                continue
            if account is not None and unit.location.account != account:
                continue

            host = (unit.name or unit.id).lower().replace(' ', '-')
            lines = [
                f"Host {host}",
                f"   HostName {unit.public_ip_address or unit.private_ip_address}",
                "   StrictHostKeyChecking no",
            ]
            # stack-launched hosts manage their own users and keys
            if unit.tag('aws:cloudformation:stack-name') is None:
                lines.append("   User ec2-user")
                lines.append(f"   IdentityFile ~/.ssh/{unit.key_name}.pem")
            entries.append("\n".join(lines) + "\n")
        return "\n".join(entries)


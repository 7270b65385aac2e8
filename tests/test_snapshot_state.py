"""Tests for the snapshot state machine and the read-side view."""

from datetime import datetime
from types import MappingProxyType

import pytest

from aws_fleet_ledger.core.exceptions import StateError
from aws_fleet_ledger.services.models import LoadBalancer, Location, Snapshot
from aws_fleet_ledger.state.snapshot_state import (
    NEVER_REFRESHED, REFRESHING, CycleStatus, SnapshotState, SnapshotView,
)

from conftest import LOCATION, make_reservation, make_unit


TIMESTAMP = datetime(2024, 1, 5, 14, 30, 22)


def snapshot_of(**kwargs) -> Snapshot:
    kwargs = {kind: tuple(values) for kind, values in kwargs.items()}
    return Snapshot(timestamp=TIMESTAMP, **kwargs)


def published(snapshot: Snapshot) -> SnapshotView:
    state = SnapshotState()
    state.publish(snapshot)
    return SnapshotView(state)


def fleet_of_ten():
    """Nine running units (two in a VPC), one stopped; seven reserved with two unused."""
    units = [make_unit(f'i-{n}', vpc_id='vpc-1' if n < 2 else None) for n in range(9)]
    units.append(make_unit('i-9', state='stopped'))
    reservation = make_reservation('r-1', instance_count=7)
    reservation.unmatched_count = 2
    reservation.compute_units = 2
    return units, [reservation]


class TestSnapshotState:

    def test_initial_state_is_idle_without_snapshot(self):
        state = SnapshotState()
        view = SnapshotView(state)

        assert state.status is CycleStatus.IDLE
        assert state.snapshot is None
        assert view.last_refresh_time() == NEVER_REFRESHED
        assert view.refresh_available()
        assert view.instances() == []

    def test_updating_hides_refresh(self):
        state = SnapshotState()
        state.begin_cycle()
        view = SnapshotView(state)

        assert view.last_refresh_time() == REFRESHING
        assert not view.refresh_available()

    def test_second_begin_is_rejected(self):
        state = SnapshotState()
        state.begin_cycle()

        with pytest.raises(StateError):
            state.begin_cycle()

    def test_error_survives_next_update_until_publish(self):
        state = SnapshotState()
        state.begin_cycle()
        state.fail("throttled")

        state.begin_cycle()
        assert state.in_error
        assert state.error_message == "throttled"

        state.publish(snapshot_of())
        assert not state.in_error
        assert state.error_message is None
        assert state.status is CycleStatus.IDLE

    def test_failure_keeps_previous_snapshot(self):
        state = SnapshotState()
        previous = snapshot_of(running_units=[make_unit('i-1')])
        state.publish(previous)

        state.begin_cycle()
        state.fail("boom")

        assert state.snapshot is previous
        assert state.status is CycleStatus.ERROR
        assert SnapshotView(state).last_refresh_time() == TIMESTAMP.isoformat()

    def test_pinned_view_ignores_later_publish(self):
        state = SnapshotState()
        first = snapshot_of(running_units=[make_unit('i-1')])
        state.publish(first)
        pinned = SnapshotView(state, state.snapshot)

        state.publish(snapshot_of(running_units=[make_unit('i-2'), make_unit('i-3')]))

        assert [u.id for u in pinned.instances()] == ['i-1']
        assert SnapshotView(state).instance_count() == 2

    def test_aggregates_read_one_snapshot_per_call(self):
        large = snapshot_of(running_units=[make_unit(f'i-{n}') for n in range(10)])
        small = snapshot_of(running_units=[make_unit('i-0')])

        class RepublishingState(SnapshotState):
            """Publishes ``small`` as soon as ``large`` has been read once."""
            reads = 0

            @property
            def snapshot(self):
                self.reads += 1
                return large if self.reads == 1 else small

        view = SnapshotView(RepublishingState())

        assert view.running_pct() == 100
        assert view.instance_pct() == 100
        assert view.summary_row().instance_count == 1

    def test_wait_until_ready_after_first_outcome(self):
        state = SnapshotState()
        assert not state.wait_until_ready(timeout=0)

        state.fail("nope")
        assert state.wait_until_ready(timeout=0)


class TestSnapshotViewAggregates:

    def test_counts_and_percentages(self):
        units, reservations = fleet_of_ten()
        view = published(snapshot_of(running_units=units, reservations=reservations))

        assert view.instance_count() == 10
        assert view.running_count() == 9
        assert view.vpc_count() == 2
        assert view.reserved_count() == 5
        assert view.unmatched_count() == 2

        # denominator is instances plus unused reservations: 12
        assert view.instance_pct() == 83
        assert view.running_pct() == 75
        assert view.reserved_pct() == 41
        assert view.unmatched_pct() == 16
        assert view.vpc_pct() == 16

    def test_percentages_are_zero_without_denominator(self):
        view = published(snapshot_of())

        assert view.instance_pct() == 0
        assert view.running_pct() == 0
        assert view.reserved_pct() == 0
        assert view.unmatched_pct() == 0
        assert view.vpc_pct() == 0

    def test_unmatched_and_matched_reservations(self):
        used = make_reservation('r-used')
        used.compute_units = 0
        spare = make_reservation('r-spare')
        view = published(snapshot_of(reservations=[used, spare]))

        assert view.matched_reservations() == [used]
        assert view.unmatched_reservations() == [spare]

    def test_cost_counts_only_running_units(self):
        running = make_unit('i-1', price=0.25)
        also_running = make_unit('i-2', price=0.5)
        stopped = make_unit('i-3', state='stopped', price=10.0)
        view = published(snapshot_of(running_units=[running, also_running, stopped]))

        assert view.total_cost_per_hour() == pytest.approx(0.75)
        assert view.formatted_cost() == "0.75"

    def test_summary_row_reflects_snapshot(self):
        units, reservations = fleet_of_ten()
        view = published(snapshot_of(running_units=units, reservations=reservations))

        row = view.summary_row()

        assert row.timestamp == TIMESTAMP
        assert row.instance_count == 10
        assert row.running_count == 9
        assert row.reserved_total == 7
        assert row.reserved_used == 5


class TestSnapshotViewOutput:

    def test_instances_for_load_balancer(self):
        unit = make_unit('i-1', public_dns_name='ec2-1.compute.amazonaws.com')
        load_balancer = LoadBalancer(id='web.elb', location=LOCATION, name='web', dns_name='web.elb',
                                     http_port=8080, instance_ids=['i-1'], instances=[unit])
        view = published(snapshot_of(load_balancers=[load_balancer]))

        assert view.instances_for_load_balancer('web') == ['ec2-1.compute.amazonaws.com:8080']
        assert view.instances_for_load_balancer('unknown') is None

    def test_ssh_config_lists_running_linux_hosts_with_keys(self):
        web = make_unit('i-1', key_name='deploy', public_ip_address='1.2.3.4', tags={'Name': 'Web Server'})
        windows = make_unit('i-2', key_name='deploy', platform='Windows')
        keyless = make_unit('i-3')
        other = make_unit('i-4', key_name='deploy', location=Location('staging', 'us-west-1'))
        view = published(snapshot_of(running_units=[web, windows, keyless, other]))

        config = view.ssh_config(account='prod')

        assert "Host web-server" in config
        assert "HostName 1.2.3.4" in config
        assert "IdentityFile ~/.ssh/deploy.pem" in config
        assert "i-2" not in config
        assert "i-3" not in config
        assert "i-4" not in config

    def test_index_is_read_only(self):
        snapshot = Snapshot(timestamp=TIMESTAMP, index=MappingProxyType({'i-1': make_unit('i-1')}))

        with pytest.raises(TypeError):
            snapshot.index['i-2'] = make_unit('i-2')

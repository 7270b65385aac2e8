"""
Pytest configuration and shared fixtures for AWS Fleet Ledger tests.
"""

import tempfile
from datetime import datetime
from pathlib import Path
from typing import List

import pytest
from moto import mock_aws

from aws_fleet_ledger.services.fetcher import Fetcher
from aws_fleet_ledger.services.models import (
    Location, REGION_SCOPE, ReservedCapacity, RunningUnit, SpotRequest, ZONE_SCOPE,
)


LOCATION = Location('prod', 'us-west-1')


def make_unit(
    instance_id: str,
    availability_zone: str = 'us-west-1a',
    instance_type: str = 'm3.small',
    state: str = 'running',
    platform: str = 'Linux/UNIX',
    **kwargs
) -> RunningUnit:
    """Build a running unit located in the zone's region."""
    location = kwargs.pop('location', Location('prod', availability_zone[:-1]))
    return RunningUnit(
        id=instance_id,
        location=location,
        state=state,
        instance_type=instance_type,
        availability_zone=availability_zone,
        platform=platform,
        **kwargs
    )


def make_reservation(
    reservation_id: str,
    instance_type: str = 'm3.small',
    instance_count: int = 1,
    availability_zone: str = 'us-west-1a',
    region_scoped: bool = False,
    product_description: str = 'Linux/UNIX',
    state: str = 'active',
    region: str = 'us-west-1',
) -> ReservedCapacity:
    return ReservedCapacity(
        id=reservation_id,
        location=Location('prod', region),
        instance_type=instance_type,
        product_description=product_description,
        instance_count=instance_count,
        state=state,
        scope=REGION_SCOPE if region_scoped else ZONE_SCOPE,
        availability_zone=None if region_scoped else availability_zone,
    )


def make_spot_request(request_id: str, price: float, instance_id: str = None) -> SpotRequest:
    return SpotRequest(id=request_id, location=LOCATION, instance_id=instance_id, state='active', price=price)


class FakeFetcher(Fetcher):
    """In-memory fetcher; a kind set to an exception instance raises it."""

    def __init__(self, **kinds):
        self.kinds = {
            'reservations': [], 'running_units': [], 'load_balancers': [], 'databases': [],
            'domain_records': [], 'volumes': [], 'caches': [], 'subnets': [],
            'spot_requests': [], 'stacks': [],
        }
        self.kinds.update(kinds)
        self.calls: List[str] = []

    def _get(self, kind):
        self.calls.append(kind)
        value = self.kinds[kind]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value()
        return list(value)

    def get_reserved_capacity(self):
        return self._get('reservations')

    def get_running_units(self):
        return self._get('running_units')

    def get_load_balancers(self):
        return self._get('load_balancers')

    def get_databases(self):
        return self._get('databases')

    def get_domain_records(self):
        return self._get('domain_records')

    def get_volumes(self):
        return self._get('volumes')

    def get_caches(self):
        return self._get('caches')

    def get_subnets(self):
        return self._get('subnets')

    def get_spot_requests(self):
        return self._get('spot_requests')

    def get_stacks(self):
        return self._get('stacks')


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files during tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_aws_services():
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches the real environment."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 1, 5, 14, 30, 22)

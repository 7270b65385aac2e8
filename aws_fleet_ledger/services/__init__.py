"""AWS inventory fetching, matching and pricing package."""

from .models import (
    Resource, RunningUnit, ReservedCapacity, LoadBalancer, Database, DomainRecord,
    Volume, Cache, Subnet, SpotRequest, InfrastructureStack, Snapshot, HistoryRow,
    FetchOutcome, Location,
)
from .base import BaseFetcher
from .fetcher import Fetcher, AWSFetcher
from .matcher import ReservationMatcher
from .cross_reference import resolve_references
from .pricing import PricingProvider, InstancesInfoPricingProvider, StaticPricingProvider, apply_pricing

__all__ = [
    'Resource',
    'RunningUnit',
    'ReservedCapacity',
    'LoadBalancer',
    'Database',
    'DomainRecord',
    'Volume',
    'Cache',
    'Subnet',
    'SpotRequest',
    'InfrastructureStack',
    'Snapshot',
    'HistoryRow',
    'FetchOutcome',
    'Location',
    'BaseFetcher',
    'Fetcher',
    'AWSFetcher',
    'ReservationMatcher',
    'resolve_references',
    'PricingProvider',
    'InstancesInfoPricingProvider',
    'StaticPricingProvider',
    'apply_pricing',
]

"""
The fetcher interface consumed by the orchestrator, and its AWS implementation.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List

from .cloudformation import CloudFormationFetcher
from .ec2 import EC2Fetcher
from .elasticache import ElastiCacheFetcher
from .elb import ELBFetcher
from .models import (
    AdvisorCheck, AdvisorResult, Cache, Database, DomainRecord, FetchOutcome,
    InfrastructureStack, LoadBalancer, ReservedCapacity, RunningUnit, SpotRequest,
    Subnet, Volume,
)
from .rds import RDSFetcher
from .route53 import Route53Fetcher
from .support import SupportFetcher

if TYPE_CHECKING:
    from ..auth.profiles import ClientGenerator


class Fetcher(ABC):
    """One operation per resource kind. Each may block on network I/O and may raise."""

    @abstractmethod
    def get_reserved_capacity(self) -> List[ReservedCapacity]:
        pass

    @abstractmethod
    def get_running_units(self) -> List[RunningUnit]:
        pass

    @abstractmethod
    def get_load_balancers(self) -> List[LoadBalancer]:
        pass

    @abstractmethod
    def get_databases(self) -> List[Database]:
        pass

    @abstractmethod
    def get_domain_records(self) -> List[DomainRecord]:
        pass

    @abstractmethod
    def get_volumes(self) -> List[Volume]:
        pass

    @abstractmethod
    def get_caches(self) -> List[Cache]:
        pass

    @abstractmethod
    def get_subnets(self) -> List[Subnet]:
        pass

    @abstractmethod
    def get_spot_requests(self) -> List[SpotRequest]:
        pass

    @abstractmethod
    def get_stacks(self) -> List[InfrastructureStack]:
        pass

    def get_advisor_checks(self) -> FetchOutcome[AdvisorCheck]:
        """Optional premium fetch; accounts without access yield a skipped outcome."""
        return FetchOutcome.skip("Trusted Advisor not supported by this fetcher")

    def get_advisor_results(self, checks: List[AdvisorCheck]) -> FetchOutcome[AdvisorResult]:
        return FetchOutcome.skip("Trusted Advisor not supported by this fetcher")


class AWSFetcher(Fetcher):
    """Fetches every resource kind through boto3 across all configured accounts."""

    def __init__(self, clients: 'ClientGenerator'):
        self.ec2 = EC2Fetcher(clients)
        self.elb = ELBFetcher(clients)
        self.rds = RDSFetcher(clients)
        self.elasticache = ElastiCacheFetcher(clients)
        self.route53 = Route53Fetcher(clients)
        self.cloudformation = CloudFormationFetcher(clients)
        self.support = SupportFetcher(clients)

    def get_reserved_capacity(self) -> List[ReservedCapacity]:
        return self.ec2.get_reserved_capacity()

    def get_running_units(self) -> List[RunningUnit]:
        return self.ec2.get_running_units()

    def get_load_balancers(self) -> List[LoadBalancer]:
        return self.elb.get_load_balancers()

    def get_databases(self) -> List[Database]:
        return self.rds.get_databases()

    def get_domain_records(self) -> List[DomainRecord]:
        return self.route53.get_domain_records()

    def get_volumes(self) -> List[Volume]:
        return self.ec2.get_volumes()

    def get_caches(self) -> List[Cache]:
        return self.elasticache.get_caches()

    def get_subnets(self) -> List[Subnet]:
        return self.ec2.get_subnets()

    def get_spot_requests(self) -> List[SpotRequest]:
        return self.ec2.get_spot_requests()

    def get_stacks(self) -> List[InfrastructureStack]:
        return self.cloudformation.get_stacks()

    def get_advisor_checks(self) -> FetchOutcome[AdvisorCheck]:
        return self.support.get_checks()

    def get_advisor_results(self, checks: List[AdvisorCheck]) -> FetchOutcome[AdvisorResult]:
        return self.support.get_results(checks)

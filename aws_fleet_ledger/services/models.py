"""
Data models for the fleet inventory.

Every model is rebuilt from raw boto3 response dictionaries on each cycle. The
cross-reference fields (``instances``, ``attached_instances``, ``subnet``,
``spot_request``, ``stack``) are derived views filled in after all fetches have
completed and are never authoritative.
"""
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar


COMPUTE_UNITS = {
    'micro': 0.5,
    'small': 1.0,
    'medium': 2.0,
    'large': 4.0,
    'xlarge': 8.0,
    '2xlarge': 16.0,
}

# Account scoped services (Route 53, Support) only answer in this region.
GLOBAL_REGION = 'us-east-1'

REGION_SCOPE = 'Region'
ZONE_SCOPE = 'Availability Zone'


def compute_units_for(instance_size: str) -> float:
    """Normalized capacity weight for an instance size; unknown sizes weigh 0."""
    return COMPUTE_UNITS.get(instance_size, 0.0)


def split_instance_type(instance_type: str) -> Tuple[str, str]:
    """Split ``m3.large`` into ``('m3', 'large')``."""
    family, _, size = instance_type.partition('.')
    return family, size


def normalize_platform(raw_platform: Optional[str]) -> str:
    """EC2 reports ``windows`` or nothing; reservations use product descriptions."""
    if raw_platform and raw_platform.lower() == 'windows':
        return 'Windows'
    return 'Linux/UNIX'


def _tags(raw: Dict[str, Any]) -> Dict[str, str]:
    return {tag['Key']: tag['Value'] for tag in raw.get('Tags') or []}


@dataclass(frozen=True)
class Location:
    """Account (credentials profile name) and region a record was fetched from."""
    account: str
    region: str


class Resource:
    """Common capability of every fetched entity.

    Subclasses are dataclasses declaring ``id``, a mutable ``price`` and the
    optional name of the infrastructure stack that owns them.
    """
    id: str
    price: float
    stack: Optional[str]


@dataclass(eq=False)
class Subnet(Resource):
    id: str
    location: Location
    vpc_id: Optional[str] = None
    cidr_block: Optional[str] = None
    availability_zone: Optional[str] = None
    default_for_az: bool = False
    tags: Dict[str, str] = field(default_factory=dict)
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.tags.get('Name')

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'Subnet':
        return cls(
            id=raw['SubnetId'],
            location=location,
            vpc_id=raw.get('VpcId'),
            cidr_block=raw.get('CidrBlock'),
            availability_zone=raw.get('AvailabilityZone'),
            default_for_az=raw.get('DefaultForAz', False),
            tags=_tags(raw),
        )


@dataclass(eq=False)
class SpotRequest(Resource):
    """A spot instance request; ``price`` carries the request's hourly spot price."""
    id: str
    location: Location
    instance_id: Optional[str] = None
    state: str = 'open'
    instance_type: Optional[str] = None
    price: float = 0.0
    stack: Optional[str] = None

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'SpotRequest':
        try:
            price = float(raw.get('SpotPrice') or 0.0)
        except ValueError:
            price = 0.0
        return cls(
            id=raw['SpotInstanceRequestId'],
            location=location,
            instance_id=raw.get('InstanceId'),
            state=raw.get('State', 'open'),
            instance_type=raw.get('LaunchSpecification', {}).get('InstanceType'),
            price=price,
        )


@dataclass(eq=False)
class RunningUnit(Resource):
    """An EC2 instance, eligible for reservation matching while running."""
    id: str
    location: Location
    state: str
    instance_type: str
    availability_zone: str
    platform: str = 'Linux/UNIX'
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    spot_request_id: Optional[str] = None
    key_name: Optional[str] = None
    launch_time: Optional[datetime] = None
    public_dns_name: Optional[str] = None
    public_ip_address: Optional[str] = None
    private_ip_address: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    matched: bool = False
    subnet: Optional[Subnet] = None            # resolved each cycle
    spot_request: Optional[SpotRequest] = None  # resolved each cycle
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def family(self) -> str:
        return split_instance_type(self.instance_type)[0]

    @property
    def size(self) -> str:
        return split_instance_type(self.instance_type)[1]

    @property
    def compute_units(self) -> float:
        return compute_units_for(self.size)

    @property
    def is_running(self) -> bool:
        return self.state == 'running'

    @property
    def is_vpc(self) -> bool:
        return bool(self.vpc_id)

    @property
    def is_spot(self) -> bool:
        return self.spot_request_id is not None

    @property
    def region(self) -> str:
        return self.location.region

    @property
    def zone(self) -> str:
        return self.availability_zone[-1:]

    @property
    def name(self) -> Optional[str]:
        return self.tag('Name')

    @property
    def short_dns_name(self) -> Optional[str]:
        if not self.public_dns_name:
            return None
        return self.public_dns_name.split('.')[0]

    def tag(self, tag_name: str) -> Optional[str]:
        return self.tags.get(tag_name)

    def same_zone_as(self, reservation: 'ReservedCapacity') -> bool:
        # local and wavelength zones extend the region name (us-west-2-lax-1a)
        return (reservation.availability_zone == self.availability_zone or
                (reservation.is_region_scoped and self.availability_zone.startswith(reservation.region)))

    def same_type_as(self, reservation: 'ReservedCapacity') -> bool:
        return (self.instance_type == reservation.instance_type or
                (reservation.is_region_scoped and self.family == reservation.family))

    def same_product_as(self, reservation: 'ReservedCapacity') -> bool:
        return self.platform.lower() == reservation.product_description.lower()

    def matches(self, reservation: 'ReservedCapacity') -> bool:
        """Zone, type and product compatibility, ignoring remaining capacity."""
        return (self.same_zone_as(reservation) and
                self.same_type_as(reservation) and
                self.same_product_as(reservation))

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'RunningUnit':
        return cls(
            id=raw['InstanceId'],
            location=location,
            state=raw['State']['Name'],
            instance_type=raw['InstanceType'],
            availability_zone=raw.get('Placement', {}).get('AvailabilityZone', ''),
            platform=normalize_platform(raw.get('Platform')),
            vpc_id=raw.get('VpcId'),
            subnet_id=raw.get('SubnetId'),
            spot_request_id=raw.get('SpotInstanceRequestId'),
            key_name=raw.get('KeyName'),
            launch_time=raw.get('LaunchTime'),
            public_dns_name=raw.get('PublicDnsName') or None,
            public_ip_address=raw.get('PublicIpAddress'),
            private_ip_address=raw.get('PrivateIpAddress'),
            tags=_tags(raw),
        )


@dataclass(eq=False)
class ReservedCapacity(Resource):
    """A reserved instance purchase, tracked in compute units while matching."""
    id: str
    location: Location
    instance_type: str
    product_description: str
    instance_count: int
    state: str = 'active'
    scope: str = ZONE_SCOPE
    availability_zone: Optional[str] = None
    end: Optional[datetime] = None
    unmatched_count: Optional[int] = None
    price: float = 0.0
    stack: Optional[str] = None

    def __post_init__(self):
        if self.unmatched_count is None:
            self.unmatched_count = self.instance_count
        self.capacity = self.instance_count * compute_units_for(self.size)
        self.compute_units = self.unmatched_count * compute_units_for(self.size)

    @property
    def family(self) -> str:
        return split_instance_type(self.instance_type)[0]

    @property
    def size(self) -> str:
        return split_instance_type(self.instance_type)[1]

    @property
    def region(self) -> str:
        return self.location.region

    @property
    def is_active(self) -> bool:
        return self.state == 'active'

    @property
    def is_region_scoped(self) -> bool:
        return self.scope == REGION_SCOPE

    def used_capacity(self) -> float:
        return self.capacity - self.compute_units

    def unused_capacity(self) -> float:
        return self.compute_units

    def matched_count(self) -> int:
        return self.instance_count - self.unmatched_count

    def consume(self, unit: RunningUnit) -> None:
        """Allocate ``unit``'s weight against this reservation."""
        self.compute_units -= unit.compute_units
        self.unmatched_count = max(0, self.unmatched_count - 1)

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'ReservedCapacity':
        return cls(
            id=raw['ReservedInstancesId'],
            location=location,
            instance_type=raw['InstanceType'],
            product_description=raw.get('ProductDescription', 'Linux/UNIX'),
            instance_count=raw.get('InstanceCount', 0),
            state=raw.get('State', 'active'),
            scope=raw.get('Scope', ZONE_SCOPE),
            availability_zone=raw.get('AvailabilityZone'),
            end=raw.get('End'),
        )


@dataclass(eq=False)
class LoadBalancer(Resource):
    id: str
    location: Location
    name: str
    dns_name: str
    http_port: Optional[int] = None
    https_port: Optional[int] = None
    instance_ids: List[str] = field(default_factory=list)
    instances: List[RunningUnit] = field(default_factory=list)  # resolved each cycle
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def number_of_instances(self) -> int:
        return len(self.instance_ids)

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'LoadBalancer':
        def instance_port_for(port: int) -> Optional[int]:
            for description in raw.get('ListenerDescriptions', []):
                listener = description.get('Listener', {})
                if listener.get('LoadBalancerPort') == port:
                    return listener.get('InstancePort')
            return None

        return cls(
            id=raw['DNSName'],
            location=location,
            name=raw['LoadBalancerName'],
            dns_name=raw['DNSName'],
            http_port=instance_port_for(80),
            https_port=instance_port_for(443),
            instance_ids=[i['InstanceId'] for i in raw.get('Instances', [])],
        )


@dataclass(eq=False)
class Database(Resource):
    id: str
    location: Location
    instance_class: str
    engine: str
    engine_version: Optional[str] = None
    multi_az: bool = False
    storage: Optional[int] = None
    endpoint: Optional[str] = None
    availability_zone: Optional[str] = None
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def name(self) -> str:
        return self.id

    @property
    def region(self) -> str:
        return self.location.region

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'Database':
        endpoint = raw.get('Endpoint')
        return cls(
            id=raw['DBInstanceIdentifier'],
            location=location,
            instance_class=raw['DBInstanceClass'],
            engine=raw['Engine'],
            engine_version=raw.get('EngineVersion'),
            multi_az=raw.get('MultiAZ', False),
            storage=raw.get('AllocatedStorage'),
            endpoint=f"{endpoint['Address']}:{endpoint['Port']}" if endpoint else None,
            availability_zone=raw.get('AvailabilityZone'),
        )


@dataclass(eq=False)
class Volume(Resource):
    id: str
    location: Location
    size: int
    volume_type: str
    state: str
    iops: Optional[int] = None
    encrypted: bool = False
    attached_instance_ids: List[str] = field(default_factory=list)
    attached_instances: List[RunningUnit] = field(default_factory=list)  # resolved each cycle
    tags: Dict[str, str] = field(default_factory=dict)
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.tags.get('Name')

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'Volume':
        return cls(
            id=raw['VolumeId'],
            location=location,
            size=raw.get('Size', 0),
            volume_type=raw.get('VolumeType', 'standard'),
            state=raw.get('State', 'available'),
            iops=raw.get('Iops'),
            encrypted=raw.get('Encrypted', False),
            attached_instance_ids=[a['InstanceId'] for a in raw.get('Attachments', []) if a.get('InstanceId')],
            tags=_tags(raw),
        )


@dataclass(eq=False)
class Cache(Resource):
    id: str
    location: Location
    node_type: str
    engine: str
    engine_version: Optional[str] = None
    status: Optional[str] = None
    node_count: int = 0
    endpoint: Optional[str] = None
    price: float = 0.0
    stack: Optional[str] = None

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'Cache':
        endpoint = raw.get('ConfigurationEndpoint')
        return cls(
            id=raw['CacheClusterId'],
            location=location,
            node_type=raw.get('CacheNodeType', ''),
            engine=raw.get('Engine', ''),
            engine_version=raw.get('EngineVersion'),
            status=raw.get('CacheClusterStatus'),
            node_count=raw.get('NumCacheNodes', 0),
            endpoint=f"{endpoint['Address']}:{endpoint['Port']}" if endpoint else None,
        )


@dataclass(eq=False)
class DomainRecord(Resource):
    """An A or CNAME record from a Route 53 hosted zone."""
    id: str
    location: Location
    record_type: str
    ttl: Optional[int] = None
    target: Optional[str] = None
    price: float = 0.0
    stack: Optional[str] = None

    @property
    def dns_name(self) -> str:
        return self.id

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location) -> 'DomainRecord':
        records = raw.get('ResourceRecords') or []
        target = records[0]['Value'] if records else raw.get('AliasTarget', {}).get('DNSName')
        return cls(
            id=raw['Name'],
            location=location,
            record_type=raw['Type'],
            ttl=raw.get('TTL'),
            target=target,
        )


@dataclass(eq=False)
class InfrastructureStack(Resource):
    """A CloudFormation stack and the physical ids of the resources it created."""
    id: str
    location: Location
    name: str
    status: Optional[str] = None
    physical_resource_ids: List[str] = field(default_factory=list)
    price: float = 0.0
    stack: Optional[str] = None

    @classmethod
    def from_boto(cls, raw: Dict[str, Any], location: Location,
                  physical_resource_ids: Optional[List[str]] = None) -> 'InfrastructureStack':
        return cls(
            id=raw.get('StackId', raw['StackName']),
            location=location,
            name=raw['StackName'],
            status=raw.get('StackStatus'),
            physical_resource_ids=list(physical_resource_ids or []),
        )


@dataclass(frozen=True)
class AdvisorCheck:
    id: str
    name: str
    category: str = ''


@dataclass
class AdvisorResult:
    """A resource flagged by a Trusted Advisor check."""
    check: AdvisorCheck
    account: str
    region: str
    resource_type: str
    resource_id: str
    description: str
    saving: str = ''
    rating: str = 'None'


T = TypeVar('T')


@dataclass
class FetchOutcome(Generic[T]):
    """Result of an optional fetch: records, or an empty result with a reason."""
    records: List[T] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @classmethod
    def ok(cls, records: List[T]) -> 'FetchOutcome[T]':
        return cls(records=list(records))

    @classmethod
    def skip(cls, reason: str) -> 'FetchOutcome[T]':
        return cls(records=[], skipped_reason=reason)

    def merge(self, other: 'FetchOutcome[T]') -> 'FetchOutcome[T]':
        """Combine per-account outcomes; reasons are kept for the log."""
        reasons = [r for r in (self.skipped_reason, other.skipped_reason) if r]
        merged = FetchOutcome(records=self.records + other.records)
        if reasons and not merged.records:
            merged.skipped_reason = '; '.join(reasons)
        return merged


@dataclass(frozen=True)
class Snapshot:
    """Complete aggregated view as of one successful cycle. Never mutated once published."""
    timestamp: datetime
    reservations: Tuple[ReservedCapacity, ...] = ()
    running_units: Tuple[RunningUnit, ...] = ()
    load_balancers: Tuple[LoadBalancer, ...] = ()
    databases: Tuple[Database, ...] = ()
    domain_records: Tuple[DomainRecord, ...] = ()
    volumes: Tuple[Volume, ...] = ()
    caches: Tuple[Cache, ...] = ()
    subnets: Tuple[Subnet, ...] = ()
    spot_requests: Tuple[SpotRequest, ...] = ()
    stacks: Tuple[InfrastructureStack, ...] = ()
    advisor_results: Tuple[AdvisorResult, ...] = ()
    index: Mapping[str, Resource] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def empty(cls) -> 'Snapshot':
        return cls(timestamp=datetime.now())


@dataclass
class HistoryRow:
    """Summary metrics persisted after every successful cycle."""
    timestamp: datetime
    load_balancer_count: int
    reserved_total: float       # compute units purchased
    reserved_used: float        # compute units matched to running units
    instance_count: int
    running_count: int
    vpc_count: int
    database_count: int
    domain_record_count: int
    volume_count: int
    total_cost: float           # USD per hour, running units only

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'load_balancer_count': self.load_balancer_count,
            'reserved_total': self.reserved_total,
            'reserved_used': self.reserved_used,
            'instance_count': self.instance_count,
            'running_count': self.running_count,
            'vpc_count': self.vpc_count,
            'database_count': self.database_count,
            'domain_record_count': self.domain_record_count,
            'volume_count': self.volume_count,
            'total_cost': self.total_cost,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryRow':
        return cls(
            timestamp=datetime.fromisoformat(data['timestamp']),
            load_balancer_count=data.get('load_balancer_count', 0),
            reserved_total=data.get('reserved_total', 0.0),
            reserved_used=data.get('reserved_used', 0.0),
            instance_count=data.get('instance_count', 0),
            running_count=data.get('running_count', 0),
            vpc_count=data.get('vpc_count', 0),
            database_count=data.get('database_count', 0),
            domain_record_count=data.get('domain_record_count', 0),
            volume_count=data.get('volume_count', 0),
            total_cost=data.get('total_cost', 0.0),
        )

"""
Cross-referencing of fetched resources through the unified id index.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Mapping

from .models import (
    InfrastructureStack, LoadBalancer, Resource, RunningUnit, SpotRequest, Subnet, Volume,
)


logger = logging.getLogger(__name__)


@dataclass
class CrossReferenceResult:
    """Counts of the links established by one resolver pass."""
    load_balancer_links: int = 0
    volume_links: int = 0
    subnet_links: int = 0
    spot_links: int = 0
    stack_links: int = 0


def resolve_references(index: Mapping[str, Resource]) -> CrossReferenceResult:
    """Link instances to load balancers, volumes, subnets, spot requests and stacks.

    Every derived field is overwritten from the index, so running this twice
    over an unchanged index produces identical links. Ids that do not resolve
    are dropped silently.
    """
    units: Dict[str, RunningUnit] = {}
    subnets: Dict[str, Subnet] = {}
    spot_requests: Dict[str, SpotRequest] = {}
    for resource_id, resource in index.items():
        if isinstance(resource, RunningUnit):
            units[resource_id] = resource
        elif isinstance(resource, Subnet):
            subnets[resource_id] = resource
        elif isinstance(resource, SpotRequest):
            spot_requests[resource_id] = resource

    result = CrossReferenceResult()

    for resource in index.values():
        if isinstance(resource, LoadBalancer):
            resource.instances = [units[i] for i in resource.instance_ids if i in units]
            result.load_balancer_links += len(resource.instances)
        elif isinstance(resource, Volume):
            resource.attached_instances = [units[i] for i in resource.attached_instance_ids if i in units]
            result.volume_links += len(resource.attached_instances)

    for unit in units.values():
        unit.subnet = subnets.get(unit.subnet_id) if unit.subnet_id else None
        unit.spot_request = spot_requests.get(unit.spot_request_id) if unit.spot_request_id else None
        result.subnet_links += unit.subnet is not None
        result.spot_links += unit.spot_request is not None

    for stack in [r for r in index.values() if isinstance(r, InfrastructureStack)]:
        for physical_id in stack.physical_resource_ids:
            owned = index.get(physical_id)
            if owned is not None:
                owned.stack = stack.name
                result.stack_links += 1

    logger.debug(f"Cross references resolved: {result}")
    return result

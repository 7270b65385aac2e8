"""Tests for cross-referencing resources through the id index."""

from aws_fleet_ledger.services.cross_reference import resolve_references
from aws_fleet_ledger.services.models import (
    InfrastructureStack, LoadBalancer, Subnet, Volume,
)

from conftest import LOCATION, make_spot_request, make_unit


def build_index(*resources):
    return {resource.id: resource for resource in resources}


def test_load_balancer_instances_are_resolved():
    unit = make_unit('i-1')
    load_balancer = LoadBalancer(id='web.elb.amazonaws.com', location=LOCATION, name='web',
                                 dns_name='web.elb.amazonaws.com', instance_ids=['i-1', 'i-gone'])

    result = resolve_references(build_index(unit, load_balancer))

    assert load_balancer.instances == [unit]
    assert result.load_balancer_links == 1


def test_volume_attachments_are_resolved():
    unit = make_unit('i-1')
    volume = Volume(id='vol-1', location=LOCATION, size=8, volume_type='gp2', state='in-use',
                    attached_instance_ids=['i-1'])

    resolve_references(build_index(unit, volume))

    assert volume.attached_instances == [unit]


def test_unit_subnet_and_spot_request_are_resolved():
    subnet = Subnet(id='subnet-1', location=LOCATION, vpc_id='vpc-1', cidr_block='10.0.0.0/24')
    spot = make_spot_request('sir-1', 0.02, instance_id='i-1')
    unit = make_unit('i-1', subnet_id='subnet-1', spot_request_id='sir-1')

    result = resolve_references(build_index(unit, subnet, spot))

    assert unit.subnet is subnet
    assert unit.spot_request is spot
    assert result.subnet_links == 1
    assert result.spot_links == 1


def test_unresolved_ids_are_dropped():
    unit = make_unit('i-1', subnet_id='subnet-missing', spot_request_id='sir-missing')
    volume = Volume(id='vol-1', location=LOCATION, size=8, volume_type='gp2', state='in-use',
                    attached_instance_ids=['i-missing'])

    resolve_references(build_index(unit, volume))

    assert unit.subnet is None
    assert unit.spot_request is None
    assert volume.attached_instances == []


def test_stack_ownership_is_marked():
    unit = make_unit('i-1')
    volume = Volume(id='vol-1', location=LOCATION, size=8, volume_type='gp2', state='in-use')
    stack = InfrastructureStack(id='arn:stack/web', location=LOCATION, name='web',
                                physical_resource_ids=['i-1', 'vol-1', 'sg-unknown'])

    result = resolve_references(build_index(unit, volume, stack))

    assert unit.stack == 'web'
    assert volume.stack == 'web'
    assert result.stack_links == 2


def test_resolving_twice_gives_identical_links():
    subnet = Subnet(id='subnet-1', location=LOCATION, vpc_id='vpc-1', cidr_block='10.0.0.0/24')
    unit = make_unit('i-1', subnet_id='subnet-1')
    load_balancer = LoadBalancer(id='web.elb.amazonaws.com', location=LOCATION, name='web',
                                 dns_name='web.elb.amazonaws.com', instance_ids=['i-1'])
    index = build_index(unit, subnet, load_balancer)

    first = resolve_references(index)
    instances_after_first = list(load_balancer.instances)
    second = resolve_references(index)

    assert first == second
    assert load_balancer.instances == instances_after_first
    assert unit.subnet is subnet

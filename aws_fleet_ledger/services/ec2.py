"""
EC2 fetcher for instances, reserved instances, volumes, subnets and spot requests.
"""
from typing import List

from .base import BaseFetcher
from .models import ReservedCapacity, RunningUnit, SpotRequest, Subnet, Volume


class EC2Fetcher(BaseFetcher):
    """Fetches the EC2 resource kinds in every account and region."""

    @property
    def service_name(self) -> str:
        return 'ec2'

    def get_running_units(self) -> List[RunningUnit]:
        """Fetch all non-terminated instances.

        Raises:
            FetchError: If any describe call fails
        """
        def describe(client, location):
            reservations = self._paginate(client, 'describe_instances', 'Reservations')
            return [
                instance
                for reservation in reservations
                for instance in reservation['Instances']
                if instance['State']['Name'] != 'terminated'
            ]

        return self._fetch_each_location('describe_instances', describe, RunningUnit.from_boto)

    def get_reserved_capacity(self) -> List[ReservedCapacity]:
        """Fetch active reserved instances.

        Raises:
            FetchError: If any describe call fails
        """
        def describe(client, location):
            response = client.describe_reserved_instances(
                Filters=[{'Name': 'state', 'Values': ['active']}]
            )
            return response.get('ReservedInstances', [])

        reservations = self._fetch_each_location(
            'describe_reserved_instances', describe, ReservedCapacity.from_boto
        )
        return [r for r in reservations if r.is_active]

    def get_volumes(self) -> List[Volume]:
        def describe(client, location):
            return self._paginate(client, 'describe_volumes', 'Volumes')

        return self._fetch_each_location('describe_volumes', describe, Volume.from_boto)

    def get_subnets(self) -> List[Subnet]:
        def describe(client, location):
            return self._paginate(client, 'describe_subnets', 'Subnets')

        return self._fetch_each_location('describe_subnets', describe, Subnet.from_boto)

    def get_spot_requests(self) -> List[SpotRequest]:
        """Fetch spot requests that still back an instance."""
        def describe(client, location):
            response = client.describe_spot_instance_requests(
                Filters=[{'Name': 'state', 'Values': ['open', 'active']}]
            )
            return response.get('SpotInstanceRequests', [])

        return self._fetch_each_location(
            'describe_spot_instance_requests', describe, SpotRequest.from_boto
        )

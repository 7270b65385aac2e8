"""
Classic load balancer fetcher.
"""
from typing import List

from .base import BaseFetcher
from .models import LoadBalancer


class ELBFetcher(BaseFetcher):

    @property
    def service_name(self) -> str:
        return 'elb'

    def get_load_balancers(self) -> List[LoadBalancer]:
        """Fetch classic load balancers with their raw registered instance ids.

        Raises:
            FetchError: If any describe call fails
        """
        def describe(client, location):
            return self._paginate(client, 'describe_load_balancers', 'LoadBalancerDescriptions')

        return self._fetch_each_location('describe_load_balancers', describe, LoadBalancer.from_boto)

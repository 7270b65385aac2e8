"""
Route 53 fetcher for A and CNAME records across every hosted zone.
"""
from typing import List

from .base import BaseFetcher
from .models import DomainRecord


RECORD_TYPES = ('A', 'CNAME')


class Route53Fetcher(BaseFetcher):
    """Route 53 is global, so records are fetched once per account."""

    @property
    def service_name(self) -> str:
        return 'route53'

    def get_domain_records(self) -> List[DomainRecord]:
        """Fetch A and CNAME records from all hosted zones of every account.

        Raises:
            FetchError: If any list call fails
        """
        def describe(client, location):
            records = []
            for zone in self._paginate(client, 'list_hosted_zones', 'HostedZones'):
                record_sets = self._paginate(
                    client, 'list_resource_record_sets', 'ResourceRecordSets',
                    HostedZoneId=zone['Id']
                )
                records.extend(r for r in record_sets if r['Type'] in RECORD_TYPES)
            return records

        return self._fetch_each_account('list_resource_record_sets', describe, DomainRecord.from_boto)

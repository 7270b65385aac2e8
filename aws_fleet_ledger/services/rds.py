"""
RDS fetcher for database instances.
"""
from typing import List

from .base import BaseFetcher
from .models import Database


class RDSFetcher(BaseFetcher):
    """Fetcher for RDS database instances."""

    @property
    def service_name(self) -> str:
        return 'rds'

    def get_databases(self) -> List[Database]:
        """Fetch all RDS instances that are not being deleted.

        Raises:
            FetchError: If any describe call fails
        """
        def describe(client, location):
            instances = self._paginate(client, 'describe_db_instances', 'DBInstances')
            return [i for i in instances if i.get('DBInstanceStatus') != 'deleting']

        return self._fetch_each_location('describe_db_instances', describe, Database.from_boto)

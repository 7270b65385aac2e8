"""
ElastiCache fetcher for cache clusters.
"""
from typing import List

from .base import BaseFetcher
from .models import Cache


class ElastiCacheFetcher(BaseFetcher):

    @property
    def service_name(self) -> str:
        return 'elasticache'

    def get_caches(self) -> List[Cache]:
        def describe(client, location):
            return self._paginate(client, 'describe_cache_clusters', 'CacheClusters')

        return self._fetch_each_location('describe_cache_clusters', describe, Cache.from_boto)

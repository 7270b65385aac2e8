"""
CloudFormation fetcher for stacks and the physical resources they own.
"""
from typing import List

from .base import BaseFetcher
from .models import InfrastructureStack


class CloudFormationFetcher(BaseFetcher):

    @property
    def service_name(self) -> str:
        return 'cloudformation'

    def get_stacks(self) -> List[InfrastructureStack]:
        """Fetch live stacks with the physical ids of their resources.

        Raises:
            FetchError: If any describe or list call fails
        """
        def describe(client, location):
            stacks = []
            for stack in self._paginate(client, 'describe_stacks', 'Stacks'):
                if stack.get('StackStatus') == 'DELETE_COMPLETE':
                    continue
                summaries = self._paginate(
                    client, 'list_stack_resources', 'StackResourceSummaries',
                    StackName=stack['StackName']
                )
                stack = dict(stack)
                stack['PhysicalResourceIds'] = [
                    s['PhysicalResourceId'] for s in summaries if s.get('PhysicalResourceId')
                ]
                stacks.append(stack)
            return stacks

        def build(raw, location):
            return InfrastructureStack.from_boto(raw, location, raw['PhysicalResourceIds'])

        return self._fetch_each_location('describe_stacks', describe, build)

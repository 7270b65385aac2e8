"""
Trusted Advisor fetcher.

Trusted Advisor is only available to accounts on a Business or Enterprise
support plan, so each account may legitimately refuse the call. Those refusals
are reported as skipped outcomes rather than failing the cycle.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import ClientError

from .base import BaseFetcher
from .models import GLOBAL_REGION, AdvisorCheck, AdvisorResult, FetchOutcome, Location


logger = logging.getLogger(__name__)

# Error codes returned by the Support API for accounts without premium support
UNSUBSCRIBED_ERRORS = ('SubscriptionRequiredException', 'AccessDeniedException')

# check name -> (resource type, metadata -> AdvisorResult keyword arguments)
# A mapper may also override region, resource_id or resource_type.
_CHECK_MAPPERS: Dict[str, Any] = {
    'Low Utilization Amazon EC2 Instances': (
        'EC2', lambda m: {'description': f"{m[2]} is a {m[3]}", 'saving': m[4]}),
    'Idle Load Balancers': (
        'ELB', lambda m: {'description': m[2], 'saving': m[3]}),
    'Load Balancer Optimization': (
        'ELB', lambda m: {'description': m[9], 'rating': m[8]}),
    'Unassociated Elastic IP Addresses': (
        'EIP', lambda m: {'description': 'IP is unused'}),
    'Underutilized Amazon EBS Volumes': (
        'EBS', lambda m: {'description': f"Volume {m[2]}, {m[4]}Gb {m[3]}", 'saving': m[5]}),
    'Amazon EBS Snapshots': (
        'EBS', lambda m: {
            'description': (f"Volume {m[2]} has a snapshot that is {m[5]} days old" if m[8] == 'Age'
                            else f"Volume {m[2]} does not have a snapshot"),
            'rating': m[7]}),
    'Overutilized Amazon EBS Magnetic Volumes': (
        'EBS', lambda m: {
            'description': f"Volume {m[2]} has been overutilized for {m[17]} days (max daily median {m[18]}%)",
            'rating': m[19]}),
    'Amazon EC2 Availability Zone Balance': (
        '-', lambda m: {
            'resource_id': '-',
            'description': (f"Region has an uneven balance of servers a:{m[1]}, b:{m[2]}, "
                            f"c:{m[3]}, d:{m[4]}, e:{m[5]}"),
            'rating': m[6]}),
    'Amazon RDS Idle DB Instances': (
        'RDS', lambda m: {'description': f"RDS instance {m[1]} ({m[3]}, {m[4]}Gb) is idle", 'saving': m[6]}),
    'Amazon RDS Multi-AZ': (
        'RDS', lambda m: {'description': f"RDS instance {m[1]} is in a single AZ", 'rating': m[4]}),
    'Amazon RDS Security Group Access Risk': (
        'RDS', lambda m: {'resource_id': m[1], 'description': f"Ingress {m[2]}: {m[4]}", 'rating': m[3]}),
    'Service Limits': (
        None, lambda m: {'resource_type': m[1], 'resource_id': '-',
                         'description': f"Using {m[4]} of {m[3]} {m[2]}", 'rating': m[5]}),
    'Amazon Route 53 Alias Resource Record Sets': (
        'R53', lambda m: {'region': '-', 'resource_id': m[0],
                          'description': f"Use an ALIAS to {m[2]} instead of a {m[3]}", 'rating': m[6]}),
    'Amazon Route 53 MX Resource Record Sets and Sender Policy Framework': (
        'R53', lambda m: {'region': '-', 'resource_id': m[0],
                          'description': f"Domain {m[2]} does not have an SPF value"}),
    'Amazon Route 53 Name Server Delegations': (
        'R53', lambda m: {'region': '-', 'resource_id': m[0],
                          'description': f"{m[0]} does not use the correct name server delegations"}),
    'Amazon S3 Bucket Logging': (
        'S3', lambda m: {'description': m[7], 'rating': m[6]}),
    'Amazon S3 Bucket Permissions': (
        'S3', lambda m: {
            'resource_id': m[2],
            'description': f"Bucket has global permissions (List: {m[3]}, Upload/Delete: {m[4]})",
            'rating': m[5]}),
    'Amazon S3 Bucket Versioning': (
        'S3', lambda m: {'description': f"Versioning is {m[2]}", 'rating': m[4]}),
    'Auto Scaling Group Health Check': (
        'EC2', lambda m: {'description': '', 'rating': m[4]}),
    'Security Groups - Unrestricted Access': (
        'EC2', lambda m: {'description': f"Port {m[4]} ({m[3]}) is open to {m[6]}", 'rating': m[5]}),
    'Security Groups - Specific Ports Unrestricted': (
        'EC2', lambda m: {'description': f"Port {m[5]} ({m[3]}) is open", 'rating': m[4]}),
    'IAM Access Key Rotation': (
        'IAM', lambda m: {'region': '-', 'description': f"Access key has not been rotated for {m[4]}",
                          'rating': m[0]}),
    'ELB Security Groups': (
        'ELB', lambda m: {'description': m[4], 'rating': m[2]}),
    'ELB Listener Security': (
        'ELB', lambda m: {'description': m[4], 'rating': m[3]}),
    'ELB Cross-Zone Load Balancing': (
        'ELB', lambda m: {'description': m[3], 'rating': m[2]}),
    'ELB Connection Draining': (
        'ELB', lambda m: {'description': m[3], 'rating': m[2]}),
    'CloudFront SSL Certificate on the Origin Server': (
        'CloudFront', lambda m: {'region': '-', 'resource_id': m[2], 'description': m[4], 'rating': m[0]}),
    'CloudFront Alternate Domain Names': (
        'CloudFront', lambda m: {'region': '-', 'resource_id': m[2], 'description': m[4], 'rating': m[0]}),
    'AWS CloudTrail Logging': (
        'CloudTrail', lambda m: {'resource_id': m[0], 'description': m[2], 'rating': m[5]}),
}


def advisor_results_for(check: AdvisorCheck, account: str, flagged: List[Dict[str, Any]]) -> List[AdvisorResult]:
    """Turn the flagged resources of one check into results."""
    results = []
    for resource in flagged:
        meta: List[Optional[str]] = resource.get('metadata') or []
        region = (meta[0] if len(meta) > 1 else None) or 'no region'
        resource_id = (meta[1] if len(meta) > 1 else None) or 'unknown resource'
        # some check names carry trailing whitespace
        resource_type, mapper = _CHECK_MAPPERS.get(check.name.strip(), ('Unknown', None))

        try:
            fields = mapper(meta) if mapper else {'description': str(meta)}
        except IndexError:
            error = f"Unexpected metadata {meta} for check '{check.name}'"
            logger.error(error)
            fields = {'description': error}
            resource_type = 'Unknown'

        fields.setdefault('resource_type', resource_type)
        fields.setdefault('region', region)
        fields.setdefault('resource_id', resource_id)
        results.append(AdvisorResult(
            check=check,
            account=account,
            **{k: (v if v is not None else '') for k, v in fields.items()}
        ))
    return results


class SupportFetcher(BaseFetcher):
    """Fetches Trusted Advisor checks and flagged resources per account."""

    @property
    def service_name(self) -> str:
        return 'support'

    def get_checks(self) -> FetchOutcome[AdvisorCheck]:
        def describe(client):
            response = client.describe_trusted_advisor_checks(language='en')
            return [AdvisorCheck(c['id'], c['name'], c.get('category', '')) for c in response['checks']]

        outcome = self._each_account_optional('describe_trusted_advisor_checks', describe)
        # the same checks are returned for every subscribed account
        unique = list(dict.fromkeys(outcome.records))
        return FetchOutcome(records=unique, skipped_reason=outcome.skipped_reason)

    def get_results(self, checks: List[AdvisorCheck]) -> FetchOutcome[AdvisorResult]:
        def describe(client, account):
            results = []
            for check in checks:
                response = client.describe_trusted_advisor_check_result(checkId=check.id, language='en')
                flagged = response.get('result', {}).get('flaggedResources', [])
                results.extend(advisor_results_for(check, account, flagged))
            return results

        return self._each_account_optional(
            'describe_trusted_advisor_check_result', describe, pass_account=True
        )

    def _each_account_optional(self, operation: str, describe: Callable, pass_account: bool = False) -> FetchOutcome:
        """Call ``describe`` per account, turning premium-support refusals into skips.

        Raises:
            FetchError: For any failure other than a missing support subscription
        """
        outcome = FetchOutcome()
        for account in self.clients.accounts:
            client = self.clients.client(self.service_name, Location(account, GLOBAL_REGION))
            try:
                records = describe(client, account) if pass_account else describe(client)
                outcome = outcome.merge(FetchOutcome.ok(records))
            except ClientError as e:
                code = e.response.get('Error', {}).get('Code', 'Unknown')
                if code not in UNSUBSCRIBED_ERRORS:
                    self._handle_aws_error(e, operation)
                reason = f"Skipping {account}, Trusted Advisor is only available with premium support ({code})"
                logger.warning(reason)
                outcome = outcome.merge(FetchOutcome.skip(reason))
        return outcome

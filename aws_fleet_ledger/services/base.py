"""
Base fetcher interface for AWS services.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, List, TypeVar

from ..core.exceptions import FetchError
from .models import Location

if TYPE_CHECKING:
    from ..auth.profiles import ClientGenerator


R = TypeVar('R')


class BaseFetcher(ABC):
    """Abstract base class for all per-service resource fetchers."""

    def __init__(self, clients: 'ClientGenerator'):
        """Initialize the fetcher with the shared client generator.

        Args:
            clients: Client generator covering every configured account and region
        """
        self.clients = clients

    @property
    @abstractmethod
    def service_name(self) -> str:
        """AWS service name (e.g., 'ec2', 'elb', 'rds')."""
        pass

    def _fetch_each_location(
        self,
        operation: str,
        describe: Callable[[Any, Location], List[Dict[str, Any]]],
        build: Callable[[Dict[str, Any], Location], R]
    ) -> List[R]:
        """Run ``describe`` in every location and build a model from each raw record.

        Raises:
            FetchError: If any describe call fails
        """
        try:
            raw_records = self.clients.each_location(self.service_name, describe)
        except FetchError:
            raise
        except Exception as e:
            self._handle_aws_error(e, operation)
        return [build(raw, location) for raw, location in raw_records]

    def _fetch_each_account(
        self,
        operation: str,
        describe: Callable[[Any, Location], List[Dict[str, Any]]],
        build: Callable[[Dict[str, Any], Location], R]
    ) -> List[R]:
        """Account scoped variant of :meth:`_fetch_each_location`."""
        try:
            raw_records = self.clients.each_account(self.service_name, describe)
        except FetchError:
            raise
        except Exception as e:
            self._handle_aws_error(e, operation)
        return [build(raw, location) for raw, location in raw_records]

    @staticmethod
    def _paginate(client: Any, operation: str, result_key: str, **kwargs) -> List[Dict[str, Any]]:
        """Collect ``result_key`` from every page of a paginated describe call."""
        records = []
        for page in client.get_paginator(operation).paginate(**kwargs):
            records.extend(page.get(result_key, []))
        return records

    def _handle_aws_error(self, error: Exception, operation: str) -> None:
        """Handle AWS API errors and convert to FetchError.

        Args:
            error: The original AWS error
            operation: Operation that failed

        Raises:
            FetchError: Wrapped error with context
        """
        error_message = f"AWS {self.service_name} {operation} failed: {str(error)}"
        raise FetchError(error_message, details=str(error)) from error

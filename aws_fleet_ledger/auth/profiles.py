"""Account profiles and per-account/per-region client fan-out."""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

import boto3
import botocore.session
from botocore.config import Config as BotoConfig
from botocore.configloader import raw_config_parse
from botocore.exceptions import BotoCoreError

from aws_fleet_ledger.core.exceptions import AuthenticationError, ConfigurationError
from aws_fleet_ledger.services.models import GLOBAL_REGION, Location


logger = logging.getLogger(__name__)

T = TypeVar('T')


class AccountProfiles:
    """The set of accounts to inventory, one boto3 session per credentials profile."""

    def __init__(self, sessions: Dict[str, boto3.Session], regions: List[str]):
        """
        Args:
            sessions: Profile name to authenticated session
            regions: Regions scanned in every account
        """
        if not sessions:
            raise ConfigurationError("No AWS accounts configured")
        self.sessions = dict(sessions)
        self.regions = list(regions)

    @classmethod
    def from_credentials_file(
        cls,
        credentials_file: Path,
        regions: List[str],
        only: Optional[List[str]] = None
    ) -> 'AccountProfiles':
        """Create one session for each profile in a shared credentials file.

        Args:
            credentials_file: Path to an ``~/.aws/credentials`` style file
            regions: Regions scanned in every account
            only: Optional subset of profile names to use

        Raises:
            ConfigurationError: If the file is missing or a requested profile is absent
            AuthenticationError: If a session cannot be created for a profile
        """
        credentials_file = Path(credentials_file).expanduser()
        if not credentials_file.exists():
            raise ConfigurationError(f"Credentials file not found: {credentials_file}")

        profile_names = list(raw_config_parse(str(credentials_file)).keys())
        if only:
            missing = [name for name in only if name not in profile_names]
            if missing:
                raise ConfigurationError(
                    f"Profiles not found in {credentials_file}: {', '.join(missing)}"
                )
            profile_names = list(only)

        sessions = {}
        for name in profile_names:
            try:
                core_session = botocore.session.Session(profile=name)
                core_session.set_config_variable('credentials_file', str(credentials_file))
                sessions[name] = boto3.Session(botocore_session=core_session)
            except BotoCoreError as e:
                raise AuthenticationError(f"Unable to load profile {name}: {e}", details=str(e))

        logger.info(f"Loaded {len(sessions)} account profiles from {credentials_file}")
        return cls(sessions, regions)

    def __iter__(self) -> Iterator[str]:
        return iter(self.sessions)

    def __len__(self) -> int:
        return len(self.sessions)

    def locations(self) -> List[Location]:
        """Every (account, region) pair, accounts in profile order."""
        return [Location(account, region) for account in self.sessions for region in self.regions]


class ClientGenerator:
    """Builds cached boto3 clients and runs a callback against each account or location."""

    def __init__(self, accounts: AccountProfiles, max_attempts: int = 5):
        self.accounts = accounts
        self.boto_config = BotoConfig(retries={'max_attempts': max_attempts, 'mode': 'standard'})
        self._client_cache: Dict[Tuple[str, str, str], Any] = {}
        # boto3 sessions are not safe for concurrent client creation
        self._lock = threading.Lock()

    def client(self, service_name: str, location: Location) -> Any:
        cache_key = (service_name, location.account, location.region)
        with self._lock:
            if cache_key not in self._client_cache:
                session = self.accounts.sessions[location.account]
                logger.debug(f"Creating {service_name} client - {location.account} ({location.region})")
                self._client_cache[cache_key] = session.client(
                    service_name, region_name=location.region, config=self.boto_config
                )
            return self._client_cache[cache_key]

    def each_location(
        self,
        service_name: str,
        callback: Callable[[Any, Location], List[T]]
    ) -> List[Tuple[T, Location]]:
        """Run ``callback`` for every account and region, tagging each record with its location."""
        results = []
        for location in self.accounts.locations():
            client = self.client(service_name, location)
            results.extend((record, location) for record in callback(client, location))
        return results

    def each_account(
        self,
        service_name: str,
        callback: Callable[[Any, Location], List[T]]
    ) -> List[Tuple[T, Location]]:
        """Run ``callback`` once per account against the global region."""
        results = []
        for account in self.accounts:
            location = Location(account, GLOBAL_REGION)
            client = self.client(service_name, location)
            results.extend((record, location) for record in callback(client, location))
        return results

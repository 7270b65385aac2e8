"""Configuration management for AWS Fleet Ledger."""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_REGIONS = [
    "us-east-1", "us-west-1", "us-west-2", "us-east-2",
    "eu-west-1", "eu-west-2", "eu-central-1",
    "ap-southeast-1", "ap-southeast-2",
]

DEFAULT_CONFIG_DIR = Path.home() / ".aws-fleet-ledger"


class Config(BaseModel):
    """Configuration model for AWS Fleet Ledger."""

    credentials_file: str = Field(default="~/.aws/credentials", description="Shared credentials file listing one profile per account")
    profiles: Optional[List[str]] = Field(default=None, description="Restrict inventory to these profiles")
    regions: List[str] = Field(default_factory=lambda: list(DEFAULT_REGIONS), description="Regions scanned in every account")
    max_workers: int = Field(default=10, ge=1, le=64, description="Concurrent outbound fetches per cycle")
    max_attempts: int = Field(default=5, ge=1, le=20, description="botocore retry attempts per API call")
    update_period_seconds: int = Field(default=3600, ge=60, description="Seconds between scheduled cycles")
    pricing_file: str = Field(default="data/instances.json", description="ec2instances.info pricing dump")
    history_file: Optional[str] = Field(default=None, description="JSON history store; defaults into the config directory")
    use_advisor: bool = Field(default=True, description="Fetch Trusted Advisor results (premium support only)")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('regions')
    @classmethod
    def validate_regions(cls, v: List[str]) -> List[str]:
        """Validate AWS region format."""
        if not v:
            raise ValueError("At least one region must be configured")
        region_pattern = r'^[a-z]{2,3}-[a-z]+-\d+$'
        for region in v:
            if not re.match(region_pattern, region):
                raise ValueError(
                    f"Invalid AWS region format: {region}. "
                    "Expected format: us-east-1, eu-west-1, ap-southeast-3, etc."
                )
        return v

    @field_validator('profiles')
    @classmethod
    def validate_profiles(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and any(not p.strip() for p in v):
            raise ValueError("Profile names cannot be blank")
        return v

    def resolved_credentials_file(self) -> Path:
        return Path(self.credentials_file).expanduser()


class ConfigManager:
    """Manages local configuration file for AWS Fleet Ledger."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.aws-fleet-ledger/
        """
        if config_dir is None:
            config_dir = DEFAULT_CONFIG_DIR

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[Config]:
        """Load configuration from file.

        Returns:
            Config object if file exists and is valid, None otherwise.

        Raises:
            ValueError: If configuration file is corrupted or invalid.
        """
        if not self.config_file.exists():
            return None

        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)

            if isinstance(config_data.get('created_at'), str):
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                dt_with_tz = datetime.fromisoformat(dt_str)
                config_data['created_at'] = dt_with_tz.replace(tzinfo=None)

            return Config(**config_data)

        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(f"Invalid configuration file: {e}")
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}")

    def load_or_default(self) -> Config:
        """Load the saved configuration, falling back to defaults when absent."""
        return self.load_config() or Config()

    def save_config(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.

        Raises:
            OSError: If unable to write configuration file.
        """
        try:
            config_dict = config.model_dump()
            config_dict['created_at'] = config.created_at.isoformat() + 'Z'

            temp_file = self.config_file.with_suffix('.tmp')
            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except Exception as e:
            temp_file = self.config_file.with_suffix('.tmp')
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        """Check if configuration file exists."""
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_file

    def history_path(self, config: Config) -> Path:
        """Location of the JSON history store for the given configuration."""
        if config.history_file:
            return Path(config.history_file).expanduser()
        return self.config_dir / "history.json"

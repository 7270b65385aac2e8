"""Property-based tests for configuration management."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from aws_fleet_ledger.core.config import DEFAULT_REGIONS, Config, ConfigManager


@st.composite
def valid_aws_region(draw):
    """Generate valid AWS region names."""
    region_prefix = draw(st.sampled_from(['us', 'eu', 'ap', 'ca', 'sa']))
    region_middle = draw(st.sampled_from(['east', 'west', 'north', 'south', 'central', 'southeast', 'northeast']))
    region_suffix = draw(st.integers(min_value=1, max_value=9))
    return f"{region_prefix}-{region_middle}-{region_suffix}"


@st.composite
def valid_config(draw):
    """Generate valid Config objects."""
    profile_name = st.text(alphabet='abcdefghijklmnopqrstuvwxyz-_0123456789', min_size=1, max_size=20)
    return Config(
        profiles=draw(st.none() | st.lists(profile_name, min_size=1, max_size=4)),
        regions=draw(st.lists(valid_aws_region(), min_size=1, max_size=5)),
        max_workers=draw(st.integers(min_value=1, max_value=64)),
        update_period_seconds=draw(st.integers(min_value=60, max_value=86400)),
        use_advisor=draw(st.booleans()),
        created_at=draw(st.datetimes(min_value=datetime(2020, 1, 1), max_value=datetime(2030, 12, 31))).replace(tzinfo=None),
        version=draw(st.text(min_size=1, max_size=20).filter(lambda x: x.strip()))
    )


class TestConfigurationRoundTrip:
    """Property-based tests for configuration round trip operations."""

    @given(config=valid_config())
    def test_config_save_load_round_trip(self, config):
        """Saving then loading produces an equivalent configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_manager = ConfigManager(config_dir=Path(temp_dir))

            config_manager.save_config(config)
            loaded_config = config_manager.load_config()

            assert loaded_config is not None
            assert loaded_config.profiles == config.profiles
            assert loaded_config.regions == config.regions
            assert loaded_config.max_workers == config.max_workers
            assert loaded_config.update_period_seconds == config.update_period_seconds
            assert loaded_config.use_advisor == config.use_advisor
            assert loaded_config.version == config.version

            time_diff = abs((loaded_config.created_at - config.created_at).total_seconds())
            assert time_diff < 1.0

    @given(config=valid_config())
    def test_config_file_exists_after_save(self, config):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_manager = ConfigManager(config_dir=Path(temp_dir))

            assert not config_manager.config_exists()
            config_manager.save_config(config)

            assert config_manager.config_exists()
            assert config_manager.get_config_path().exists()


class TestConfigValidation:
    """Unit tests for configuration validation."""

    def test_defaults(self):
        config = Config()

        assert config.regions == DEFAULT_REGIONS
        assert config.max_workers == 10
        assert config.update_period_seconds == 3600
        assert config.use_advisor
        assert config.version == "1.0.0"
        assert isinstance(config.created_at, datetime)

    def test_invalid_region_format(self):
        invalid_regions = [
            "invalid-region",
            "us-east",
            "usa1-east-1",
            "us_east_1",
        ]

        for invalid_region in invalid_regions:
            with pytest.raises(ValueError, match="Invalid AWS region format"):
                Config(regions=[invalid_region])

    def test_empty_regions_rejected(self):
        with pytest.raises(ValueError, match="At least one region"):
            Config(regions=[])

    def test_blank_profile_rejected(self):
        with pytest.raises(ValueError, match="Profile names cannot be blank"):
            Config(profiles=["prod", "  "])

    @pytest.mark.parametrize('field,value', [
        ('max_workers', 0),
        ('max_workers', 65),
        ('update_period_seconds', 59),
        ('max_attempts', 0),
    ])
    def test_out_of_range_values_rejected(self, field, value):
        with pytest.raises(ValueError):
            Config(**{field: value})

    def test_credentials_file_is_expanded(self):
        config = Config(credentials_file="~/creds")

        assert config.resolved_credentials_file() == Path.home() / "creds"


class TestConfigManagerEdgeCases:
    """Unit tests for configuration manager edge cases."""

    def test_load_nonexistent_config(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)

        assert config_manager.load_config() is None
        assert config_manager.load_or_default().regions == DEFAULT_REGIONS

    def test_load_corrupted_config(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)
        with open(config_manager.get_config_path(), 'w') as f:
            f.write("invalid json content")

        with pytest.raises(ValueError, match="Invalid configuration file"):
            config_manager.load_config()

    def test_config_directory_creation(self, temp_config_dir):
        config_dir = temp_config_dir / "nested" / "config" / "dir"
        ConfigManager(config_dir=config_dir)

        assert config_dir.is_dir()

    def test_history_path_defaults_into_config_dir(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)

        assert config_manager.history_path(Config()) == temp_config_dir / "history.json"
        assert config_manager.history_path(Config(history_file="/tmp/h.json")) == Path("/tmp/h.json")

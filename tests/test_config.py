"""Tests for runtime configuration."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from orgpulse.config import FetchSettings, OrgPulseConfig


class TestOrgPulseConfig:
    """Test OrgPulseConfig class."""

    @patch.dict(
        os.environ,
        {
            "GITHUB_TOKEN": "ghp_test",
            "MONGO_URI": "mongodb://db:27017",
            "MONGO_DATABASE": "pulse",
            "MONGO_OPTIONS": '{"maxPoolSize": 20}',
            "ORGPULSE_CHECKPOINT_FILE": "/tmp/cp.json",
        },
    )
    def test_reads_environment(self) -> None:
        config = OrgPulseConfig()

        assert config.has_token()
        assert config.mongo_uri == "mongodb://db:27017"
        assert config.mongo_database == "pulse"
        assert config.mongo_options == {"maxPoolSize": 20}
        assert config.checkpoint_path == Path("/tmp/cp.json")
        config.validate()

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        config = OrgPulseConfig()

        assert not config.has_token()
        assert config.mongo_database == "orgpulse"
        assert config.mongo_options == {}
        assert config.checkpoint_path == Path("checkpoint.json")

    @patch.dict(os.environ, {}, clear=True)
    def test_validate_missing_uri(self) -> None:
        with pytest.raises(ValueError, match="MONGO_URI"):
            OrgPulseConfig().validate()

    @patch.dict(os.environ, {"MONGO_URI": "mongodb://db", "MONGO_OPTIONS": "[1, 2]"})
    def test_mongo_options_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            OrgPulseConfig().validate()


class TestFetchSettings:
    """Test FetchSettings defaults and bounds."""

    def test_defaults(self) -> None:
        settings = FetchSettings()

        assert settings.concurrency == 3
        assert settings.batch_size == 5
        assert settings.max_retries == 3
        assert settings.issue_max_pages == 5
        assert settings.item_delay == 0.3
        assert settings.batch_delay == 3.0
        assert settings.checkpoint_max_age == 3600.0

    def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValidationError):
            FetchSettings(concurrency=0)

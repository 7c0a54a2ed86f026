"""Tests for runtime settings."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from deviation_import.config import DEFAULT_API_URL, Settings, load_settings
from deviation_import.exceptions import ConfigurationError

ENV_VARS = [
    "DEVIATION_IMPORT_DATA_DIR",
    "DEVIATION_IMPORT_CONFIG_DIR",
    "DEVIANTART_CLIENT_ID",
    "DEVIANTART_CLIENT_SECRET",
    "DEVIATION_IMPORT_RATE_LIMIT_MS",
    "CHARDB_API_URL",
    "CHARDB_EMAIL",
    "CHARDB_PASSWORD",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with none of the settings variables set."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadSettings:
    """Test environment loading."""

    def test_defaults(self, clean_env):
        """Without environment values the defaults apply."""
        settings = load_settings()

        assert settings.data_dir == Path("data")
        assert settings.config_dir == Path("config")
        assert settings.api_url == DEFAULT_API_URL
        assert settings.rate_limit_ms == 1000
        assert settings.client_id == ""

    def test_environment_values(self, clean_env):
        """Environment variables populate the settings."""
        clean_env.setenv("DEVIANTART_CLIENT_ID", "cid")
        clean_env.setenv("DEVIATION_IMPORT_RATE_LIMIT_MS", "250")
        clean_env.setenv("CHARDB_API_URL", "https://registry.test/graphql")

        settings = load_settings()

        assert settings.client_id == "cid"
        assert settings.rate_limit_ms == 250
        assert settings.api_url == "https://registry.test/graphql"

    def test_env_file(self, clean_env, tmp_path):
        """An explicit .env file is loaded."""
        env_file = tmp_path / "custom.env"
        env_file.write_text("CHARDB_EMAIL=admin@test\nCHARDB_PASSWORD=pw\n")

        with patch.dict(os.environ):
            settings = load_settings(env_file)

        assert settings.require_registry_credentials() == ("admin@test", "pw")


class TestCredentialChecks:
    """Test required credential checks."""

    def test_missing_source_credentials(self):
        """Missing DeviantArt credentials raise ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(client_id="only-id").require_source_credentials()
        assert "DEVIANTART_CLIENT_SECRET" in str(exc_info.value)

    def test_missing_registry_credentials(self):
        """Missing registry credentials raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            Settings(email="admin@test").require_registry_credentials()

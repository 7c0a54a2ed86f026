"""
Runtime settings for the deviation import pipeline.

Values come from the environment (optionally seeded from a ``.env`` file) and
can be overridden per invocation by CLI flags.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger("deviation-import")

DEFAULT_API_URL = "http://localhost:4000/graphql"


class Settings(BaseModel):
    """Paths, credentials and pacing for all subcommands."""

    data_dir: Path = Field(default=Path("data"), description="Root directory for pipeline artifacts")
    config_dir: Path = Field(default=Path("config"), description="Directory holding trait-mapping.json")

    # Source platform (OAuth2 client credentials)
    client_id: str = Field(default="", description="DeviantArt OAuth client id")
    client_secret: str = Field(default="", description="DeviantArt OAuth client secret")
    rate_limit_ms: int = Field(default=1000, ge=0, description="Minimum milliseconds between source API calls")

    # Destination registry
    api_url: str = Field(default=DEFAULT_API_URL, description="Registry GraphQL endpoint")
    email: str = Field(default="", description="Registry admin login email")
    password: str = Field(default="", description="Registry admin login password")

    def require_source_credentials(self) -> tuple[str, str]:
        """Return (client_id, client_secret) or raise if either is missing."""
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "DeviantArt credentials required. Set DEVIANTART_CLIENT_ID and "
                "DEVIANTART_CLIENT_SECRET env vars, or use --client-id and --client-secret flags."
            )
        return self.client_id, self.client_secret

    def require_registry_credentials(self) -> tuple[str, str]:
        """Return (email, password) or raise if either is missing."""
        if not self.email or not self.password:
            raise ConfigurationError(
                "Registry credentials required. Set CHARDB_EMAIL and CHARDB_PASSWORD "
                "env vars, or use --email and --password flags."
            )
        return self.email, self.password


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Build Settings from the environment.

    Args:
        env_file: Optional explicit .env path; defaults to ./.env when present.

    Returns:
        Settings populated from environment variables, falling back to defaults.
    """
    if env_file is not None:
        load_dotenv(env_file)
    elif not load_dotenv():
        logger.debug(".env file not found, using process environment only")

    values: dict[str, object] = {}
    env_map = {
        "data_dir": "DEVIATION_IMPORT_DATA_DIR",
        "config_dir": "DEVIATION_IMPORT_CONFIG_DIR",
        "client_id": "DEVIANTART_CLIENT_ID",
        "client_secret": "DEVIANTART_CLIENT_SECRET",
        "rate_limit_ms": "DEVIATION_IMPORT_RATE_LIMIT_MS",
        "api_url": "CHARDB_API_URL",
        "email": "CHARDB_EMAIL",
        "password": "CHARDB_PASSWORD",
    }
    for field_name, env_name in env_map.items():
        raw = os.getenv(env_name)
        if raw:
            values[field_name] = raw

    return Settings(**values)

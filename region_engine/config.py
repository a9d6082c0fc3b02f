"""Run configuration for the region commands.

Each command reads an env file (positional argument, default ``.env``) and
lets CLI flags override the namespace values. The resulting ``Settings`` is
passed explicitly to every component; nothing writes back into os.environ.
"""

import logging
import os
from pathlib import Path

import logfire
from dotenv import dotenv_values
from pydantic import BaseModel, Field

STATES_URL = "https://eric.clst.org/assets/wiki/uploads/Stuff/gz_2010_us_040_00_5m.json"
COUNTIES_URL = "https://eric.clst.org/assets/wiki/uploads/Stuff/gz_2010_us_050_00_5m.json"


class ConfigurationError(Exception):
    """Required configuration is missing or unreadable."""


class Settings(BaseModel):
    """Resolved configuration for one command invocation."""

    env_file: Path = Field(description="Env file the values were loaded from")
    hostname: str | None = Field(
        default=None,
        description="Dataset namespace the editor and boundary builder work in"
    )
    source_host: str | None = Field(
        default=None,
        description="Namespace the aggregator reads zipcode assignments from"
    )
    target_host: str | None = Field(
        default=None,
        description="Namespace the aggregator writes generated regions to"
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Root of the per-host entity document tree"
    )
    geojson_dir: Path = Field(
        default=Path("geojson-data"),
        description="Cache directory for reference GeoJSON datasets"
    )
    states_url: str = STATES_URL
    counties_url: str = COUNTIES_URL
    logfire_token: str | None = None
    log_level: str = "INFO"

    def require_hostname(self) -> str:
        if not self.hostname:
            raise ConfigurationError(
                "HOSTNAME must be set in the env file or provided via --host"
            )
        return self.hostname

    def require_source_host(self) -> str:
        if not self.source_host:
            raise ConfigurationError(
                "SOURCE_HOSTNAME must be set in the env file or provided via --source-host"
            )
        return self.source_host

    def require_target_host(self) -> str:
        if not self.target_host:
            raise ConfigurationError(
                "HOSTNAME must be set in the env file or provided via --target-host"
            )
        return self.target_host


def load_settings(
    env_file: str | Path = ".env",
    host: str | None = None,
    source_host: str | None = None,
    target_host: str | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Build Settings from an env file, the process environment and CLI overrides.

    Values in the env file win over the process environment; explicit
    arguments win over both.
    """
    env_path = Path(env_file)
    if not env_path.is_absolute():
        env_path = Path.cwd() / env_path
    if not env_path.is_file():
        raise ConfigurationError(f"Error loading env file: {env_path} not found")

    file_values = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
    fallback = os.environ if environ is None else environ

    def lookup(key: str) -> str | None:
        value = file_values.get(key, fallback.get(key))
        return value or None

    values: dict = {
        "env_file": env_path,
        "hostname": host or lookup("HOSTNAME"),
        "source_host": source_host or lookup("SOURCE_HOSTNAME"),
        "target_host": target_host or lookup("HOSTNAME"),
        "logfire_token": lookup("LOGFIRE_TOKEN"),
    }
    optional = {
        "data_dir": "REGION_DATA_DIR",
        "geojson_dir": "GEOJSON_CACHE_DIR",
        "states_url": "STATES_GEOJSON_URL",
        "counties_url": "COUNTIES_GEOJSON_URL",
        "log_level": "LOG_LEVEL",
    }
    for field, key in optional.items():
        value = lookup(key)
        if value:
            values[field] = value

    return Settings(**values)


def configure_logging(settings: Settings) -> None:
    """Set up stdlib logging, plus Logfire when a token is configured."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    if settings.logfire_token:
        logfire.configure(token=settings.logfire_token)
        logging.getLogger().addHandler(logfire.LogfireLoggingHandler())

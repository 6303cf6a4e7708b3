"""
Configuration management for AdCast.

Supports loading from environment variables and YAML files.
All settings cover schedule expansion, playlist push over MQTT, device
heartbeats and daily impression aggregation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration."""

    host: str = "localhost"
    port: int = 5432
    name: str = "adcast"
    user: str = "adcast"
    password: str = ""
    pool_size: int = 10
    max_overflow: int = 20

    # Overrides host/port/name when set (e.g. sqlite+aiosqlite:///./adcast.db)
    url: str = ""

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"

    @property
    def sync_url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class BrokerSettings(BaseSettings):
    """MQTT broker configuration."""

    host: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "adcast-server"
    keepalive: int = 60

    @property
    def url(self) -> str:
        return f"mqtt://{self.host}:{self.port}"


class ServerSettings(BaseSettings):
    """Uvicorn / HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


class StorageSettings(BaseSettings):
    """Media storage / playable URL resolution."""

    # "s3" signs object URLs, "egress" builds URLs from a CDN base
    resolver: Literal["s3", "egress"] = "s3"
    bucket: str = ""
    region: str = "ap-south-1"
    url_expiry_seconds: int = 86400
    url_timeout_seconds: float = 5.0
    egress_base_url: str = ""


# ---------------------------------------------------------------------------
# Scheduling / Push
# ---------------------------------------------------------------------------

class SchedulingSettings(BaseSettings):
    """Schedule expansion configuration."""

    # Wall-clock slots are interpreted in this zone and stored as UTC
    timezone: str = "UTC"
    default_slot_start: str = "06:00"
    default_slot_end: str = "22:00"


class PushSettings(BaseSettings):
    """Playlist push configuration."""

    publish_timeout_seconds: float = 10.0
    max_concurrency: int = 4

    # Fixed operational window used for playlist assembly (UTC hours)
    window_start_hour: int = 6
    window_end_hour: int = 22

    default_scrolling_message: str = "AdCast - contact your administrator to advertise here"

    # Daily full re-push
    daily_push_enabled: bool = True
    daily_push_crons: list[str] = ["5 6 * * *"]
    daily_push_timezone: str = "UTC"


class HeartbeatSettings(BaseSettings):
    """Device heartbeat batching."""

    topic: str = "device/sync"
    flush_interval_seconds: float = 60.0


class ImpressionSettings(BaseSettings):
    """Daily impression aggregation."""

    placeholder_duration_seconds: int = 10


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------

class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "console"] = "json"


class MonitoringSettings(BaseSettings):
    """Prometheus / monitoring configuration."""

    enabled: bool = True


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ADCAST_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = "AdCast"
    app_version: str = "0.1.0"
    debug: bool = False
    env: Literal["dev", "prod", "test"] = "dev"

    # Nested settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    heartbeat: HeartbeatSettings = Field(default_factory=HeartbeatSettings)
    impressions: ImpressionSettings = Field(default_factory=ImpressionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        if v not in ("dev", "prod", "test"):
            raise ValueError(f"Invalid environment: {v}")
        return v


# ---------------------------------------------------------------------------
# YAML Loader
# ---------------------------------------------------------------------------

def load_yaml_config(config_path: Path) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def merge_configs(base: dict, override: dict) -> dict:
    """Deep-merge two configuration dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


_SECTION_CLASSES: dict[str, type[BaseSettings]] = {
    "server": ServerSettings,
    "database": DatabaseSettings,
    "broker": BrokerSettings,
    "storage": StorageSettings,
    "scheduling": SchedulingSettings,
    "push": PushSettings,
    "heartbeat": HeartbeatSettings,
    "impressions": ImpressionSettings,
    "logging": LoggingSettings,
    "monitoring": MonitoringSettings,
}


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings.

    Loads from:
    1. configs/base.yaml (base configuration)
    2. configs/{env}.yaml (environment-specific overrides)
    3. Environment variables (highest priority)
    """
    import os

    env = os.getenv("ADCAST_ENV", "dev")

    config_dir = Path(__file__).parent.parent.parent / "configs"

    base_config = load_yaml_config(config_dir / "base.yaml")
    env_config = load_yaml_config(config_dir / f"{env}.yaml")
    merged = merge_configs(base_config, env_config)

    flat_config: dict = {}
    if "app" in merged:
        flat_config["app_name"] = merged["app"].get("name", "AdCast")
        flat_config["app_version"] = merged["app"].get("version", "0.1.0")
        flat_config["debug"] = merged["app"].get("debug", False)

    flat_config["env"] = env

    # pydantic-settings gives init kwargs higher priority than env vars,
    # so env-var overrides are merged into the YAML dict first.
    for section_key, settings_cls in _SECTION_CLASSES.items():
        section_data = dict(merged.get(section_key, {}))

        # ADCAST_SECTION__FIELD -> field
        prefix = f"ADCAST_{section_key.upper()}__"
        for env_key, env_value in os.environ.items():
            if env_key.startswith(prefix):
                field_name = env_key[len(prefix):].lower()
                section_data[field_name] = env_value

        flat_config[section_key] = settings_cls(**section_data)

    return Settings(**flat_config)


# Convenience alias
settings = get_settings()

"""Configuration management with YAML and environment variables."""
import os
from datetime import timedelta
from pathlib import Path
from typing import Optional, List, Dict
import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from wantarr.errors import ConfigurationError


class PvrConfig(BaseModel):
    type: str  # sonarr_v4, radarr_v5, lidarr_v2, ...
    url: str
    api_key: str


class RetrySettings(BaseModel):
    max_attempts: int = 6
    status_codes: List[int] = Field(default_factory=lambda: [504])
    backoff_min: float = 0.5  # secondes
    backoff_max: float = 10.0


class ClientSettings(BaseModel):
    """Paramètres HTTP et polling passés à chaque client PVR."""
    page_size: int = 1000
    timeout: float = 120.0
    sort_key: str = "airDateUtc"
    retry: RetrySettings = Field(default_factory=RetrySettings)
    poll_interval: float = 10.0
    poll_timeout: Optional[float] = None  # None = attente illimitée


class SearchSettings(BaseModel):
    batch_size: int = Field(default=10, ge=1)
    flush_partial_batch: bool = False
    max_queue_size: Optional[int] = None
    skip_searched_within_hours: Optional[float] = None

    @property
    def skip_searched_within(self) -> Optional[timedelta]:
        if self.skip_searched_within_hours is None:
            return None
        return timedelta(hours=self.skip_searched_within_hours)


class AppConfig(BaseModel):
    database: str = "wantarr.db"
    log_level: str = "INFO"


class Config(BaseSettings):
    pvr: Dict[str, PvrConfig] = Field(default_factory=dict)
    client: ClientSettings = Field(default_factory=ClientSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    app: AppConfig = Field(default_factory=AppConfig)

    class Config:
        env_prefix = "WANTARR_"
        env_file = ".env"
        env_nested_delimiter = "__"

    def get_pvr(self, name: str) -> PvrConfig:
        """Return the configuration of the named PVR."""
        pvr_config = self.pvr.get(name)
        if pvr_config is None:
            raise ConfigurationError(f"no pvr configuration found for: {name!r}")
        return pvr_config

    @classmethod
    def load_from_yaml(cls, yaml_path: str) -> "Config":
        """Load configuration from YAML file, override with env vars."""
        config_path = Path(yaml_path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Config file not found: {yaml_path}\n"
                f"Please create it from config.example.yaml"
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

        # Override PVR credentials with environment variables (PVR__SONARR__API_KEY=...)
        for pvr_name, pvr_data in (yaml_data.get("pvr") or {}).items():
            for subkey in ("type", "url", "api_key"):
                env_value = os.getenv(f"PVR__{pvr_name.upper()}__{subkey.upper()}")
                if env_value:
                    pvr_data[subkey] = env_value

        try:
            return cls(**yaml_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {yaml_path}: {e}") from e


# Global config instance (initialized by the CLI)
config: Optional[Config] = None


def init_config(config_path: str = "config.yaml") -> Config:
    """Initialize global config from YAML file."""
    global config
    config = Config.load_from_yaml(config_path)
    return config

"""Configuration models using Pydantic for validation."""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import os


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid log level: {v}")
        return level


class APIConfig(BaseModel):
    """Explorer API server configuration."""
    host: str = "0.0.0.0"
    port: int = 8081


class SelfMetricsConfig(BaseModel):
    """Prometheus exposition of the explorer's own metrics."""
    enabled: bool = False
    port: int = 9108
    prefix: str = "tunnelscope_"
    bind_address: str = "0.0.0.0"


class ExplorerConfig(BaseModel):
    """Dataset exploration defaults."""
    initial_file: Optional[str] = None
    default_view_mode: Literal["cumulative", "delta"] = "cumulative"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    api: APIConfig = Field(default_factory=APIConfig)
    self_metrics: SelfMetricsConfig = Field(default_factory=SelfMetricsConfig)
    explorer: ExplorerConfig = Field(default_factory=ExplorerConfig)


def _apply_env_overrides(raw_config: dict) -> dict:
    """Overlay environment variables onto the raw config mapping."""
    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    if env_port := os.getenv('TUNNELSCOPE_API_PORT'):
        raw_config.setdefault('api', {})['port'] = env_port

    return raw_config


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load and validate configuration from a YAML file.

    With no path the defaults are used, still subject to environment
    overrides.
    """
    import yaml

    raw_config = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

    raw_config = _apply_env_overrides(raw_config)

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

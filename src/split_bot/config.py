"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class TelegramConfig(BaseModel):
    token: str


class SplitwiseConfig(BaseModel):
    client_id: str
    client_secret: Optional[str] = None
    redirect_uri: str
    base_url: str = "https://secure.splitwise.com/api/v3.0"
    authorize_url: str = "https://secure.splitwise.com/oauth/authorize"
    token_url: str = "https://secure.splitwise.com/oauth/token"
    timeout: float = 30.0
    category_id: int = 15  # "General"


class SessionConfig(BaseModel):
    button_timeout: float = 60.0  # seconds
    login_timeout: float = 300.0
    default_currency: str = "SGD"


class OAuthCallbackConfig(BaseModel):
    """HTTP endpoint Splitwise redirects to after the user authorizes the bot."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/oauth/callback"


class SchedulerConfig(BaseModel):
    timezone: str = "UTC"


class StorageConfig(BaseModel):
    db_path: str = "./data/split_bot.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False
    data_dir: str = "./data"
    telegram: TelegramConfig
    splitwise: SplitwiseConfig
    session: SessionConfig = Field(default_factory=SessionConfig)
    oauth: OAuthCallbackConfig = Field(default_factory=OAuthCallbackConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other keys, e.g. storage.db_path
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated)

    return AppConfig(**data)

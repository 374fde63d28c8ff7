"""Configuration management for the shell enabler."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .auth import DEFAULT_ROUTER_IP


class RouterConfig(BaseModel):
    """Router connection settings."""
    host: str = DEFAULT_ROUTER_IP
    model: str = "redmi_ax5400pro"
    password: str = ""


class TimingConfig(BaseModel):
    """Timeouts and fixed waits, in seconds."""
    http_timeout: float = Field(default=30, gt=0)
    probe_timeout: float = Field(default=3, gt=0)
    post_trigger_delay: float = Field(default=1, ge=0)
    step_delay: float = Field(default=2, ge=0)


class TaskTimeConfig(BaseModel):
    """Where the scene task time cursor is stored."""
    cache_file: Optional[str] = None  # None = .task_time_cache next to the executable


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None


class Config(BaseModel):
    """Main configuration class."""
    router: RouterConfig = Field(default_factory=RouterConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    task_time: TaskTimeConfig = Field(default_factory=TaskTimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


ENV_VAR = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: Any) -> Any:
    """Substitute ${NAME} references in every string of a parsed YAML tree.

    Unset variables become empty strings, so a missing ROUTER_PASSWORD reads
    as "no password" rather than the literal placeholder.
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    if isinstance(value, str):
        return ENV_VAR.sub(lambda m: os.environ.get(m.group(1), ""), value)
    return value


def load_config(config_path: str = "config.yaml", env_file: str = ".env") -> Config:
    """Read a YAML config file, with ${VAR} references resolved from the environment.

    Variables from env_file (if it exists) are loaded first without overriding
    ones already set.

    Raises:
        FileNotFoundError: config_path does not exist.
        yaml.YAMLError: The file is not valid YAML.
        pydantic.ValidationError: A value is out of range or of the wrong type.
    """
    if Path(env_file).is_file():
        load_dotenv(env_file)

    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    raw = yaml.safe_load(path.read_text()) or {}
    return Config.model_validate(expand_env_vars(raw))

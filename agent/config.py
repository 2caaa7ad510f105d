"""Configuration loading.

Settings come from ``~/.clawloop/config.yaml`` (the directory can be moved
with ``CLAWLOOP_HOME``). Secrets are read from ``~/.clawloop/.env`` and a
project ``.env`` via python-dotenv. A few ``CLAWLOOP_*`` variables
override the file for one-off runs.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clawloop_constants import (
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_TEMPERATURE,
    MAX_HISTORY_MESSAGES,
    MAX_TOOL_ITERATIONS,
)
from providers.registry import get_provider, normalize_provider_id
from security.policy import DEFAULT_ALLOWED_COMMANDS, DEFAULT_FORBIDDEN_PATHS, AutonomyLevel

logger = logging.getLogger(__name__)

EnvGetter = Callable[[str], Optional[str]]


class ConfigError(Exception):
    """Raised when the config file cannot be read or is invalid."""


def clawloop_home(env_get: EnvGetter = os.getenv) -> Path:
    return Path(env_get("CLAWLOOP_HOME") or Path.home() / ".clawloop")


def _validate_provider(value: str) -> str:
    if value.startswith("custom:"):
        return value
    normalized = normalize_provider_id(value)
    if get_provider(normalized) is None:
        raise ValueError(f"unknown provider: {value}")
    return normalized


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class AutonomyConfig(_Frozen):
    level: AutonomyLevel = AutonomyLevel.SUPERVISED
    workspace_only: bool = True
    allowed_commands: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))
    forbidden_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_PATHS))
    max_actions_per_hour: int = Field(default=100, ge=1)

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value):
        return AutonomyLevel.parse(value)


class ReliabilityConfig(_Frozen):
    provider_retries: int = Field(default=2, ge=0)
    provider_backoff_ms: int = Field(default=500, ge=0)
    fallback_providers: List[str] = Field(default_factory=list)

    @field_validator("fallback_providers")
    @classmethod
    def _check_fallbacks(cls, value: List[str]) -> List[str]:
        return [_validate_provider(v) for v in value]


class ModelRouteConfig(_Frozen):
    hint: str
    provider: str
    model: str
    api_key: Optional[str] = None

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        return _validate_provider(value)


class MemoryConfig(_Frozen):
    auto_save: bool = True


class ObservabilityConfig(_Frozen):
    backend: str = "none"  # none | log


class AgentLoopConfig(_Frozen):
    max_tool_iterations: int = Field(default=MAX_TOOL_ITERATIONS, ge=1)
    max_history_messages: int = Field(default=MAX_HISTORY_MESSAGES, ge=1)


class Config(_Frozen):
    workspace_dir: Path = Field(default_factory=lambda: clawloop_home() / "workspace")
    api_key: Optional[str] = None
    default_provider: str = DEFAULT_PROVIDER
    default_model: str = DEFAULT_MODEL
    default_temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    identity: Optional[str] = None
    autonomy: AutonomyConfig = Field(default_factory=AutonomyConfig)
    reliability: ReliabilityConfig = Field(default_factory=ReliabilityConfig)
    model_routes: List[ModelRouteConfig] = Field(default_factory=list)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    agent: AgentLoopConfig = Field(default_factory=AgentLoopConfig)

    @field_validator("default_provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        return _validate_provider(value)

    @field_validator("workspace_dir", mode="before")
    @classmethod
    def _expand_workspace(cls, value):
        return Path(os.path.expanduser(str(value)))


# Environment variables that override config.yaml keys
ENV_OVERRIDES: Dict[str, str] = {
    "CLAWLOOP_PROVIDER": "default_provider",
    "CLAWLOOP_MODEL": "default_model",
    "CLAWLOOP_WORKSPACE": "workspace_dir",
    "CLAWLOOP_API_KEY": "api_key",
}


def load_env_files(home: Path) -> None:
    """Load ``<home>/.env`` first, then a project ``.env`` as fallback."""
    env_path = home / ".env"
    if env_path.exists():
        try:
            load_dotenv(env_path, encoding="utf-8")
        except UnicodeDecodeError:
            load_dotenv(env_path, encoding="latin-1")
    load_dotenv()


def read_config_file(path: Path) -> Dict:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def load_config(
    path: Optional[Path] = None,
    *,
    env_get: EnvGetter = os.getenv,
    load_env: bool = True,
) -> Config:
    """Build the effective configuration.

    Precedence: ``CLAWLOOP_*`` environment overrides, then config.yaml,
    then built-in defaults.
    """
    home = clawloop_home(env_get)
    if load_env:
        load_env_files(home)

    path = path or home / "config.yaml"
    data = read_config_file(path)
    data.setdefault("workspace_dir", str(home / "workspace"))

    for env_var, key in ENV_OVERRIDES.items():
        value = env_get(env_var)
        if isinstance(value, str) and value.strip():
            data[key] = value.strip()

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e

    logger.debug(
        "Loaded config from %s: provider=%s model=%s workspace=%s",
        path, config.default_provider, config.default_model, config.workspace_dir,
    )
    return config

"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = "taskrelay.yaml"


class ConfigError(ValueError):
    """Raised when required settings are missing or invalid."""


class AsanaConfig(BaseModel):
    access_token: str = ""
    workspace: str = ""
    team: str = ""
    base_url: str = "https://app.asana.com/api/1.0"
    timeout: float = 10.0
    page_size: int = 100


class ServerConfig(BaseModel):
    bind: str = "0.0.0.0"
    port: int = 3000
    path: str = "/"
    public_url: str = ""  # target URL registered on every webhook


class RulesConfig(BaseModel):
    backlog_section: str = ""
    backlog_label: str = "Top Priority"
    backlog_ignore_sections: list[str] = Field(
        default_factory=lambda: ["1156081171852558"]
    )
    custom_field: str = ""
    current_project: str = "Current Run"
    tag_excluded_projects: list[str] = Field(
        default_factory=lambda: ["Current Run"]
    )


class DispatchConfig(BaseModel):
    queue_size: int = 256


# (dotted setting, env var) pairs that must be non-empty before startup
_REQUIRED: list[tuple[str, str]] = [
    ("asana.access_token", "TASKRELAY_ASANA__ACCESS_TOKEN"),
    ("asana.workspace", "TASKRELAY_ASANA__WORKSPACE"),
    ("asana.team", "TASKRELAY_ASANA__TEAM"),
    ("rules.backlog_section", "TASKRELAY_RULES__BACKLOG_SECTION"),
    ("rules.custom_field", "TASKRELAY_RULES__CUSTOM_FIELD"),
    ("server.public_url", "TASKRELAY_SERVER__PUBLIC_URL"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASKRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    asana: AsanaConfig = Field(default_factory=AsanaConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    log_level: str = "INFO"
    log_json: bool = False

    def missing_required(self) -> list[str]:
        missing: list[str] = []
        for dotted, env_name in _REQUIRED:
            section, key = dotted.split(".")
            if not getattr(getattr(self, section), key):
                missing.append(f"{dotted} ({env_name})")
        return missing

    def validate_required(self) -> None:
        """Raise ConfigError listing every required setting that is unset."""
        missing = self.missing_required()
        if missing:
            raise ConfigError("Missing required settings: " + ", ".join(missing))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _env_overrides(yaml_data: dict[str, Any]) -> dict[str, Any]:
    """Collect nested values that env vars set, so they can win over YAML."""
    env_only = Settings()
    overrides: dict[str, Any] = {}
    prefix = "TASKRELAY_"
    for name in os.environ:
        upper = name.upper()
        if not upper.startswith(prefix) or upper == "TASKRELAY_CONFIG":
            continue
        parts = upper[len(prefix):].lower().split("__")
        value: Any = env_only
        for part in parts:
            value = getattr(value, part, None)
            if value is None:
                break
        if value is None:
            continue
        if isinstance(value, BaseModel):
            value = value.model_dump()
        node = overrides
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return _deep_merge(yaml_data, overrides)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("TASKRELAY_CONFIG")
    if config_path is None:
        default = Path.cwd() / DEFAULT_CONFIG_FILE
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        if not isinstance(yaml_data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")

    if not yaml_data:
        return Settings()

    # YAML values as defaults, env vars override
    return Settings(**_env_overrides(yaml_data))

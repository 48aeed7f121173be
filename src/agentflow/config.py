"""Configuration helpers for agentflow."""

from __future__ import annotations

import importlib
import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml

from .errors import ConfigError

DEFAULT_PROVIDER = "agentflow.llm.provider:OpenAIChatProvider"

# environment variable -> (section, key); section None means top level
ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("llm", "api_key"),
    "OPENAI_BASE_URL": ("llm", "base_url"),
    "OPENAI_MODEL": ("llm", "model"),
    "DATABASE_URL": (None, "database_url"),
    "AGENTFLOW_LOG_LEVEL": (None, "log_level"),
}


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{name} must be positive")
    return number


@dataclass
class LLMSpec:
    """Generation provider and its parameters."""

    provider: str = DEFAULT_PROVIDER
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: Optional[float] = None
    max_tokens: int = 8192
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "LLMSpec":
        if not data:
            return cls()
        return cls(
            provider=str(data.get("provider") or DEFAULT_PROVIDER),
            model=str(data.get("model") or "gpt-4o-mini"),
            base_url=data.get("base_url"),
            api_key=data.get("api_key"),
            timeout=_optional_float(data.get("timeout"), "llm.timeout"),
            max_tokens=_positive_int(data.get("max_tokens", 8192), "llm.max_tokens"),
            params=dict(data.get("params") or {}),
        )

    def provider_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "base_url": self.base_url,
            "api_key": self.api_key,
            "timeout": self.timeout,
            "max_tokens": self.max_tokens,
        }
        if self.params:
            params["options"] = dict(self.params)
        return params


@dataclass
class ServerSpec:
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ServerSpec":
        if not data:
            return cls()
        return cls(
            host=str(data.get("host", "127.0.0.1")),
            port=_positive_int(data.get("port", 8000), "server.port"),
        )


@dataclass
class BroadcastSpec:
    queue_size: int = 256

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "BroadcastSpec":
        if not data:
            return cls()
        return cls(queue_size=_positive_int(data.get("queue_size", 256), "broadcast.queue_size"))


@dataclass
class Settings:
    """Representation of the YAML configuration plus environment overrides."""

    llm: LLMSpec = field(default_factory=LLMSpec)
    server: ServerSpec = field(default_factory=ServerSpec)
    broadcast: BroadcastSpec = field(default_factory=BroadcastSpec)
    database_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        data = data or {}
        log_level = str(data.get("log_level") or "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigError(f"Unknown log level '{log_level}'")
        return cls(
            llm=LLMSpec.from_mapping(data.get("llm")),
            server=ServerSpec.from_mapping(data.get("server")),
            broadcast=BroadcastSpec.from_mapping(data.get("broadcast")),
            database_url=data.get("database_url") or None,
            log_level=log_level,
        )

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "Settings":
        return cls.from_mapping(read_config_file(path))

    @classmethod
    def load(
        cls,
        path: str | pathlib.Path | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Read ``path`` when given, then apply environment overrides."""

        data: Dict[str, Any] = read_config_file(path) if path else {}
        apply_env_overrides(data, os.environ if environ is None else environ)
        return cls.from_mapping(data)


def read_config_file(path: str | pathlib.Path) -> Dict[str, Any]:
    config_path = pathlib.Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config not found: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config {config_path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, MutableMapping):
        raise ConfigError("Configuration root must be a mapping")
    return dict(data)


def apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if not value:
            continue
        if section is None:
            data[key] = value
        else:
            nested = dict(data.get(section) or {})
            nested[key] = value
            data[section] = nested
    return data


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module '{module_path}': {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Import and instantiate a class given its dotted path."""

    cls = import_string(path)
    return cls(*args, **kwargs)

"""Settings for the grep client and server."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

import yaml
from dotenv import dotenv_values

logger = logging.getLogger(__name__)

_DEFAULT_SERVERS = ("localhost:50051", "localhost:50052", "localhost:50053")

_KEY_LOG_LEVEL = "LOG_LEVEL"
_KEY_PORT = "GRPC_SERVER.PORT"
_KEY_SERVERS = "CLIENT.SERVER_LIST"
_KEY_TIMEOUT = "CLIENT.TIMEOUT"
_KEY_CHUNK_SIZE = "CLIENT.CHUNK_SIZE"
_KEYS = (_KEY_LOG_LEVEL, _KEY_PORT, _KEY_SERVERS, _KEY_TIMEOUT, _KEY_CHUNK_SIZE)


class ConfigError(Exception):
    """Raised when settings cannot be turned into a configuration."""


@dataclass
class GRPCServerConfig:
    port: int = 0


@dataclass
class ClientConfig:
    server_list: list[str] = field(default_factory=lambda: list(_DEFAULT_SERVERS))
    timeout: str = "30s"
    chunk_size: int = 1024


@dataclass
class Config:
    log_level: str = "info"
    grpc_server: GRPCServerConfig = field(default_factory=GRPCServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"30s"`` or ``"1h15m"`` into seconds."""
    body = text
    sign = 1
    if body[:1] in ("+", "-") and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ConfigError(f"invalid duration {text!r}")

    total = Fraction(0)
    position = 0
    while position < len(body):
        component = _COMPONENT.match(body, position)
        if component is None:
            raise ConfigError(f"invalid duration {text!r}")
        total += Fraction(component[1]) * _NANOSECONDS[component[2]]
        position = component.end()

    return sign * int(total) / 1_000_000_000


def _flatten(mapping: Mapping[Any, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in mapping.items():
        name = f"{prefix}{str(key).upper()}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, name + "."))
        else:
            flat[name] = value
    return flat


def _read_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as stream:
        document = yaml.safe_load(stream)
    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ConfigError(f"{path}: top level is not a mapping")
    return _flatten(document)


def _env_name(key: str) -> str:
    return key.replace(".", "_")


def _as_str(key: str, value: Any) -> str:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"{key}: expected a string, got {value!r}")


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{key}: expected an integer, got {value!r}")


def _as_list(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [_as_str(key, item) for item in value]
    raise ConfigError(f"{key}: expected a list, got {value!r}")


def get_config(config_path: str = "config.yaml", env_path: str = ".env") -> Config:
    """Build the configuration from defaults, a YAML file, a dotenv file and the environment.

    Later sources win: environment variables over the dotenv file over the YAML file.
    Missing or unreadable files are reported and skipped.
    """
    settings: dict[str, Any] = {}

    if config_path:
        try:
            settings.update(_read_yaml(config_path))
        except (OSError, yaml.YAMLError, ConfigError) as exc:
            logger.warning("loading %s: %s; continuing with defaults", config_path, exc)

    env_file: dict[str, str] = {}
    if env_path:
        if os.path.isfile(env_path):
            env_file = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
        else:
            logger.warning("loading %s: file not found; continuing with defaults", env_path)

    for key in _KEYS:
        name = _env_name(key)
        if name in os.environ:
            settings[key] = os.environ[name]
        elif name in env_file:
            settings[key] = env_file[name]

    config = Config()
    if _KEY_LOG_LEVEL in settings:
        config.log_level = _as_str(_KEY_LOG_LEVEL, settings[_KEY_LOG_LEVEL])
    if _KEY_PORT in settings:
        config.grpc_server.port = _as_int(_KEY_PORT, settings[_KEY_PORT])
    if _KEY_SERVERS in settings:
        config.client.server_list = _as_list(_KEY_SERVERS, settings[_KEY_SERVERS])
    if _KEY_TIMEOUT in settings:
        config.client.timeout = _as_str(_KEY_TIMEOUT, settings[_KEY_TIMEOUT])
    if _KEY_CHUNK_SIZE in settings:
        config.client.chunk_size = _as_int(_KEY_CHUNK_SIZE, settings[_KEY_CHUNK_SIZE])
    return config
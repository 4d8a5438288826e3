"""Radiator Exporter 설정"""

import os
import tomllib
from dataclasses import dataclass, field
from typing import Any

from radiator_exporter.errors import ConfigError
from radiator_exporter.models.catalog import Catalog, parse_catalog


CONFIG_PATH: str = os.environ.get("RADIATOR_EXPORTER_CONFIG", "config.toml")
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class WwwConfig:
    bind_address: str = "::"
    port: int = 10014


@dataclass(frozen=True)
class RadiatorConfig:
    mgmt_port: int
    username: str
    password: str
    target: str = "127.0.0.1"
    poll_interval: float = 15.0
    timeout: float = 10.0
    backoff_max: float = 300.0


@dataclass(frozen=True)
class ExporterConfig:
    www: WwwConfig
    radiator: RadiatorConfig
    catalog: Catalog = field(default_factory=Catalog)


def _get(table: dict[str, Any], key: str, path: str, expected: type | tuple, default: Any = None) -> Any:
    value = table.get(key, default)
    # bool 은 int 의 하위 클래스라 따로 막는다
    if value is None or isinstance(value, bool) or not isinstance(value, expected):
        if value is None and default is None:
            raise ConfigError(f"{path}.{key} is required")
        raise ConfigError(f"{path}.{key} has an invalid type")
    return value


def _port(table: dict[str, Any], key: str, path: str, default: int | None = None) -> int:
    port = _get(table, key, path, int, default)
    if not 0 < port < 65536:
        raise ConfigError(f"{path}.{key} must be between 1 and 65535")
    return port


def _seconds(table: dict[str, Any], key: str, path: str, default: float) -> float:
    seconds = float(_get(table, key, path, (int, float), default))
    if seconds <= 0:
        raise ConfigError(f"{path}.{key} must be positive")
    return seconds


def _credential(table: dict[str, Any], key: str) -> str:
    value = _get(table, key, "radiator", str)
    if " " in value:
        raise ConfigError(f"radiator.{key} must not contain spaces")
    if "\0" in value:
        raise ConfigError(f"radiator.{key} must not contain NUL characters")
    return value


def parse_config(document: dict[str, Any]) -> ExporterConfig:
    """TOML 문서(dict)를 검증해서 ExporterConfig 로 변환"""
    www = document.get("www", {})
    radiator = document.get("radiator")
    if not isinstance(www, dict):
        raise ConfigError("www must be a table")
    if not isinstance(radiator, dict):
        raise ConfigError("radiator section is required")

    www_config = WwwConfig(
        bind_address=_get(www, "bind_address", "www", str, WwwConfig.bind_address),
        port=_port(www, "port", "www", WwwConfig.port),
    )
    radiator_config = RadiatorConfig(
        target=_get(radiator, "target", "radiator", str, RadiatorConfig.target),
        mgmt_port=_port(radiator, "mgmt_port", "radiator"),
        username=_credential(radiator, "username"),
        password=_credential(radiator, "password"),
        poll_interval=_seconds(radiator, "poll_interval", "radiator", RadiatorConfig.poll_interval),
        timeout=_seconds(radiator, "timeout", "radiator", RadiatorConfig.timeout),
        backoff_max=_seconds(radiator, "backoff_max", "radiator", RadiatorConfig.backoff_max),
    )
    catalog = parse_catalog(document.get("metrics"), document.get("per_object_metrics"))
    return ExporterConfig(www=www_config, radiator=radiator_config, catalog=catalog)


def load_config(path: str = CONFIG_PATH) -> ExporterConfig:
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"failed to load config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e
    return parse_config(document)

"""Controller configuration of the extension and its loading from files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

import yaml

GROUP_NAME = "cilium.networking.extensions.config.gardener.cloud"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"
KIND = "ControllerConfiguration"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "μs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when the controller configuration cannot be built or loaded."""


def _parse_duration(text: str, path: str) -> timedelta:
    """Parse a duration such as ``30s``, ``1m30s`` or ``1.5h``."""
    body = text
    sign = 1
    if body[:1] in "+-" and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ConfigError(f"{path}: invalid duration {text!r}")
    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(body):
        if match.start() != pos:
            raise ConfigError(f"{path}: invalid duration {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(body):
        raise ConfigError(f"{path}: invalid duration {text!r}")
    return sign * total


def _mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"{path}: expected an object")
    return value


def _string(value: Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{path}: expected a string")
    return value


@dataclass
class ClientConnectionConfiguration:
    """Settings of the client talking to the API server."""

    kubeconfig: str = ""
    accept_content_types: str = ""
    content_type: str = ""
    qps: float = 0.0
    burst: int = 0

    @classmethod
    def _from_dict(cls, data: Any, path: str) -> "ClientConnectionConfiguration":
        mapping = _mapping(data, path)
        qps = mapping.get("qps", 0.0)
        if isinstance(qps, bool) or not isinstance(qps, (int, float)):
            raise ConfigError(f"{path}.qps: expected a number")
        burst = mapping.get("burst", 0)
        if isinstance(burst, bool) or not isinstance(burst, int):
            raise ConfigError(f"{path}.burst: expected an integer")
        if not _INT32_MIN <= burst <= _INT32_MAX:
            raise ConfigError(f"{path}.burst: value {burst} out of int32 range")
        return cls(
            kubeconfig=_string(mapping.get("kubeconfig"), f"{path}.kubeconfig"),
            accept_content_types=_string(
                mapping.get("acceptContentTypes"), f"{path}.acceptContentTypes"
            ),
            content_type=_string(mapping.get("contentType"), f"{path}.contentType"),
            qps=float(qps),
            burst=burst,
        )


@dataclass
class HealthCheckConfig:
    """Settings of the health check controller."""

    sync_period: timedelta = timedelta(0)

    @classmethod
    def _from_dict(cls, data: Any, path: str) -> "HealthCheckConfig":
        mapping = _mapping(data, path)
        raw = mapping.get("syncPeriod")
        if raw is None:
            return cls()
        if not isinstance(raw, str):
            raise ConfigError(f"{path}.syncPeriod: expected a duration string")
        return cls(sync_period=_parse_duration(raw, f"{path}.syncPeriod"))


@dataclass
class ControllerConfiguration:
    """Configuration of the Cilium networking extension controller."""

    client_connection: ClientConnectionConfiguration | None = None
    health_check_config: HealthCheckConfig | None = None


def load(data: bytes | str) -> ControllerConfiguration:
    """Decode a YAML document into a ControllerConfiguration."""
    if not data:
        return ControllerConfiguration()
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"could not parse controller configuration: {exc}") from exc
    if document is None:
        return ControllerConfiguration()
    mapping = _mapping(document, "ControllerConfiguration")

    api_version = _string(mapping.get("apiVersion"), "apiVersion")
    kind = _string(mapping.get("kind"), "kind")
    if api_version != API_VERSION:
        raise ConfigError(f"unsupported apiVersion {api_version!r}, expected {API_VERSION!r}")
    if kind != KIND:
        raise ConfigError(f"no kind {kind!r} is registered for version {API_VERSION!r}")

    client_raw = mapping.get("clientConnection")
    health_raw = mapping.get("healthCheckConfig")
    return ControllerConfiguration(
        client_connection=None
        if client_raw is None
        else ClientConnectionConfiguration._from_dict(client_raw, "clientConnection"),
        health_check_config=None
        if health_raw is None
        else HealthCheckConfig._from_dict(health_raw, "healthCheckConfig"),
    )


def load_from_file(filename: str | Path) -> ControllerConfiguration:
    """Read a file and decode it into a ControllerConfiguration."""
    return load(Path(filename).read_bytes())


@dataclass
class ConfigOptions:
    """Command-line options pointing at the controller configuration file."""

    config_file_path: str = ""
    _config: ControllerConfiguration | None = field(default=None, repr=False, compare=False)

    def complete(self) -> None:
        """Load the configuration file named by the options."""
        if not self.config_file_path:
            raise ConfigError("config file path not set")
        self._config = load_from_file(self.config_file_path)

    def completed(self) -> ControllerConfiguration:
        """Return the loaded configuration; only valid after complete()."""
        if self._config is None:
            raise ConfigError("options have not been completed")
        return self._config
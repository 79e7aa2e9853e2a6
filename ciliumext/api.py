"""Cilium network configuration API: types, constants and provider-config decoding."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, TypeVar

import yaml

# Extension identity.
TYPE = "cilium"
NAME = "networking-cilium"
RELEASE_NAME = "cilium"
MONITORING_NAME = "cilium-monitoring-config"

# Image names.
CILIUM_AGENT_IMAGE_NAME = "cilium-agent"
CILIUM_OPERATOR_IMAGE_NAME = "cilium-operator"
HUBBLE_RELAY_IMAGE_NAME = "hubble-relay"
HUBBLE_UI_IMAGE_NAME = "hubble-ui"
HUBBLE_UI_BACKEND_IMAGE_NAME = "hubble-ui-backend"
CERT_GEN_IMAGE_NAME = "certgen"
KUBE_PROXY_IMAGE_NAME = "kube-proxy"
PORTMAP_COPIER_IMAGE_NAME = "portmap-copier"

# Chart locations.
CHARTS_PATH = os.path.join("charts")
INTERNAL_CHARTS_PATH = os.path.join(CHARTS_PATH, "internal")
CHART_PATH = os.path.join(INTERNAL_CHARTS_PATH, "cilium")
CILIUM_MONITORING_CHART_PATH = os.path.join(INTERNAL_CHARTS_PATH, "cilium-monitoring")

# API group registration.
GROUP_NAME = "cilium.networking.extensions.gardener.cloud"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"
KIND = "NetworkConfig"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class DecodeError(ValueError):
    """Raised when a network configuration cannot be decoded."""


class IdentityAllocationMode(str, Enum):
    """How identities are shared between cilium nodes."""

    CRD = "crd"
    KVSTORE = "kvstore"


class TunnelMode(str, Enum):
    """Tunnel mode used by Cilium."""

    VXLAN = "vxlan"
    GENEVE = "geneve"
    DISABLED = "disabled"


class LoadBalancingMode(str, Enum):
    """Load balancing mode used by Cilium."""

    SNAT = "snat"
    DSR = "dsr"
    HYBRID = "hybrid"


class KubeProxyReplacementMode(str, Enum):
    """Mode in which Cilium replaces kube-proxy."""

    STRICT = "strict"
    PROBE = "probe"
    PARTIAL = "partial"
    DISABLED = "disabled"


class NodePortMode(str, Enum):
    """How NodePort services are enabled."""

    HYBRID = "hybrid"


class Store(str, Enum):
    """Storage backend for Cilium state."""

    KUBERNETES = "kubernetes"


_E = TypeVar("_E", bound=Enum)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _check_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DecodeError(f"{path}: expected an object")
    return value


def _check_known(data: Mapping[str, Any], known: set[str], path: str) -> None:
    unknown = sorted(set(data) - known)
    if unknown:
        raise DecodeError(f"{path}: unknown field(s) {', '.join(repr(k) for k in unknown)}")


def _bool(value: Any, path: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise DecodeError(f"{path}: expected a boolean")
    return value


def _int(value: Any, path: str, *, int32: bool = False) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"{path}: expected an integer")
    if int32 and not _INT32_MIN <= value <= _INT32_MAX:
        raise DecodeError(f"{path}: value {value} out of int32 range")
    return value


def _str(value: Any, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{path}: expected a string")
    return value


def _enum(cls: type[_E], value: Any, path: str) -> _E | str | None:
    text = _str(value, path)
    if text is None:
        return None
    try:
        return cls(text)
    except ValueError:
        # Unknown values are kept verbatim; callers decide whether they are supported.
        return text


@dataclass
class _Toggle:
    enabled: bool = False

    @classmethod
    def from_dict(cls, data: Any, path: str = ""):
        mapping = _check_mapping(data, path)
        _check_known(mapping, {"enabled"}, path)
        return cls(enabled=bool(_bool(mapping.get("enabled"), f"{path}.enabled")))

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled}


class Hubble(_Toggle):
    """Hubble enablement."""


class IPv6(_Toggle):
    """IPv6 enablement."""


class BPFSocketLBHostnsOnly(_Toggle):
    """Socket load balancing restricted to the host namespace."""


class EgressGateway(_Toggle):
    """Egress gateway enablement."""


class Overlay(_Toggle):
    """Network overlay enablement."""


class SnatToUpstreamDNS(_Toggle):
    """Masquerading of packets to the upstream DNS server."""


class SnatOutOfCluster(_Toggle):
    """Masquerading of packets leaving the cluster."""


@dataclass
class KubeProxy:
    """Kubernetes API endpoint used when running without kube-proxy."""

    service_host: str | None = None
    service_port: int | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "kubeproxy") -> "KubeProxy":
        mapping = _check_mapping(data, path)
        _check_known(mapping, {"k8sServiceHost", "k8sServicePort"}, path)
        return cls(
            service_host=_str(mapping.get("k8sServiceHost"), f"{path}.k8sServiceHost"),
            service_port=_int(mapping.get("k8sServicePort"), f"{path}.k8sServicePort", int32=True),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.service_host is not None:
            out["k8sServiceHost"] = self.service_host
        if self.service_port is not None:
            out["k8sServicePort"] = self.service_port
        return out


_TOGGLE_FIELDS: dict[str, tuple[str, type[_Toggle]]] = {
    "hubble": ("hubble", Hubble),
    "ipv6": ("ipv6", IPv6),
    "bpfSocketLBHostnsOnly": ("bpf_socket_lb_hostns_only", BPFSocketLBHostnsOnly),
    "egressGateway": ("egress_gateway", EgressGateway),
    "overlay": ("overlay", Overlay),
    "snatToUpstreamDNS": ("snat_to_upstream_dns", SnatToUpstreamDNS),
    "snatOutOfCluster": ("snat_out_of_cluster", SnatOutOfCluster),
}

_KNOWN_KEYS = {
    "apiVersion",
    "kind",
    "debug",
    "psp",
    "kubeproxy",
    "tunnel",
    "store",
    "mtu",
    "devices",
    "loadBalancingMode",
    "ipv4NativeRoutingCIDREnabled",
    *_TOGGLE_FIELDS,
}


@dataclass
class NetworkConfig:
    """Provider configuration of the Cilium networking plugin."""

    debug: bool | None = None
    psp_enabled: bool | None = None
    kube_proxy: KubeProxy | None = None
    hubble: Hubble | None = None
    tunnel_mode: TunnelMode | str | None = None
    store: Store | str | None = None
    ipv6: IPv6 | None = None
    bpf_socket_lb_hostns_only: BPFSocketLBHostnsOnly | None = None
    egress_gateway: EgressGateway | None = None
    mtu: int | None = None
    devices: list[str] = field(default_factory=list)
    load_balancing_mode: LoadBalancingMode | str | None = None
    ipv4_native_routing_cidr_enabled: bool | None = None
    overlay: Overlay | None = None
    snat_to_upstream_dns: SnatToUpstreamDNS | None = None
    snat_out_of_cluster: SnatOutOfCluster | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "NetworkConfig":
        """Build a config from its wire form, rejecting unknown fields and wrong types."""
        mapping = _check_mapping(data, "NetworkConfig")
        _check_known(mapping, _KNOWN_KEYS, "NetworkConfig")

        api_version = _str(mapping.get("apiVersion"), "apiVersion")
        if api_version and api_version != API_VERSION:
            raise DecodeError(f"unsupported apiVersion {api_version!r}, expected {API_VERSION!r}")
        kind = _str(mapping.get("kind"), "kind")
        if kind and kind != KIND:
            raise DecodeError(f"no kind {kind!r} is registered for version {API_VERSION!r}")

        devices_raw = mapping.get("devices")
        if devices_raw is None:
            devices: list[str] = []
        elif isinstance(devices_raw, list):
            devices = [_str(item, f"devices[{pos}]") or "" for pos, item in enumerate(devices_raw)]
        else:
            raise DecodeError("devices: expected a list of strings")

        kube_proxy_raw = mapping.get("kubeproxy")
        toggles = {
            attr: None if mapping.get(key) is None else toggle.from_dict(mapping[key], key)
            for key, (attr, toggle) in _TOGGLE_FIELDS.items()
        }

        return cls(
            debug=_bool(mapping.get("debug"), "debug"),
            psp_enabled=_bool(mapping.get("psp"), "psp"),
            kube_proxy=None if kube_proxy_raw is None else KubeProxy.from_dict(kube_proxy_raw),
            tunnel_mode=_enum(TunnelMode, mapping.get("tunnel"), "tunnel"),
            store=_enum(Store, mapping.get("store"), "store"),
            mtu=_int(mapping.get("mtu"), "mtu"),
            devices=devices,
            load_balancing_mode=_enum(
                LoadBalancingMode, mapping.get("loadBalancingMode"), "loadBalancingMode"
            ),
            ipv4_native_routing_cidr_enabled=_bool(
                mapping.get("ipv4NativeRoutingCIDREnabled"), "ipv4NativeRoutingCIDREnabled"
            ),
            **toggles,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form, leaving out unset optional fields."""
        out: dict[str, Any] = {"apiVersion": API_VERSION, "kind": KIND}
        scalars = {
            "debug": self.debug,
            "psp": self.psp_enabled,
            "tunnel": _plain(self.tunnel_mode),
            "store": _plain(self.store),
            "mtu": self.mtu,
            "loadBalancingMode": _plain(self.load_balancing_mode),
            "ipv4NativeRoutingCIDREnabled": self.ipv4_native_routing_cidr_enabled,
        }
        out.update({key: value for key, value in scalars.items() if value is not None})
        if self.kube_proxy is not None:
            out["kubeproxy"] = self.kube_proxy.to_dict()
        if self.devices:
            out["devices"] = list(self.devices)
        for key, (attr, _) in _TOGGLE_FIELDS.items():
            toggle = getattr(self, attr)
            if toggle is not None:
                out[key] = toggle.to_dict()
        return out


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise DecodeError(f"duplicate field {key!r}")
        result[key] = value
    return result


def decode_network_config(raw: bytes | str) -> NetworkConfig:
    """Strictly decode a JSON or YAML document into a NetworkConfig."""
    text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
    try:
        data = json.loads(text, object_pairs_hook=_reject_duplicates)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DecodeError(f"could not parse network config: {exc}") from exc
    if data is None:
        raise DecodeError("network config is empty")
    return NetworkConfig.from_dict(data)


def network_config_from_provider_config(raw: bytes | str | None) -> NetworkConfig:
    """Extract the NetworkConfig from a Network resource's provider config."""
    if raw is None:
        raise DecodeError("provider config is not set on the network resource")
    return decode_network_config(raw)
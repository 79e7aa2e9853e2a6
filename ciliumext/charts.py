"""Computation of the values handed to the Cilium chart."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from .api import (
    CERT_GEN_IMAGE_NAME,
    CILIUM_AGENT_IMAGE_NAME,
    CILIUM_OPERATOR_IMAGE_NAME,
    HUBBLE_RELAY_IMAGE_NAME,
    HUBBLE_UI_BACKEND_IMAGE_NAME,
    HUBBLE_UI_IMAGE_NAME,
    KUBE_PROXY_IMAGE_NAME,
    PORTMAP_COPIER_IMAGE_NAME,
    IdentityAllocationMode,
    KubeProxyReplacementMode,
    LoadBalancingMode,
    NetworkConfig,
    Store,
    TunnelMode,
)
from .models import Cluster, Network

# Key under which the rendered chart is stored in the config secret.
CILIUM_CONFIG_KEY = "config.yaml"

DEFAULT_IPAM_MODE = "kubernetes"
NATIVE_ROUTING_ALL = "0.0.0.0/0"

ImageFinder = Callable[..., str]
"""Called as ``finder(name)``, or ``finder(name, kubernetes_version)`` for kube-proxy."""

_DEFAULT_IMAGE_NAMES = (
    CILIUM_AGENT_IMAGE_NAME,
    CILIUM_OPERATOR_IMAGE_NAME,
    HUBBLE_RELAY_IMAGE_NAME,
    HUBBLE_UI_IMAGE_NAME,
    HUBBLE_UI_BACKEND_IMAGE_NAME,
    CERT_GEN_IMAGE_NAME,
    PORTMAP_COPIER_IMAGE_NAME,
)


class ChartValuesError(ValueError):
    """Raised when the chart values cannot be computed."""


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _requirements() -> dict[str, Any]:
    return {
        "agent": {"enabled": True, "sleepAfterInit": False},
        "config": {"enabled": True},
        "operator": {"enabled": True},
        "preflight": {"enabled": False, "toFQDNPreCache": ""},
        "hubble": {"enabled": False},
    }


def _global(image_finder: ImageFinder) -> dict[str, Any]:
    return {
        "tunnel": TunnelMode.VXLAN.value,
        "identityAllocationMode": IdentityAllocationMode.CRD.value,
        "kubeProxyReplacement": KubeProxyReplacementMode.DISABLED.value,
        "etcd": {
            "enabled": False,
            "managed": False,
            "clusterDomain": "",
            "ssl": False,
            "endpoints": "",
        },
        "ipv4": {"enabled": True},
        "ipv6": {"enabled": False},
        "debug": {"enabled": False},
        "prometheus": {"enabled": True, "port": 9090, "serviceMonitor": {"enabled": False}},
        "operatorHighAvailability": {"enabled": True},
        "operatorPrometheus": {"enabled": True, "port": 6942},
        "psp": {"enabled": True},
        "images": {name: image_finder(name) for name in _DEFAULT_IMAGE_NAMES},
        "k8sServiceHost": "",
        "k8sServicePort": 0,
        "nodePort": {"enabled": False, "mode": ""},
        "podCIDR": "",
        "nodeCIDR": "",
        "bpfSocketLBHostnsOnly": {"enabled": False},
        "localRedirectPolicy": {"enabled": False},
        "nodeLocalDNS": {"enabled": False},
        "egressGateway": {"enabled": False},
        "ipv4NativeRoutingCIDR": "",
        "mtu": 0,  # 0 means auto detection
        "devices": None,
        "bpf": {"lbMode": LoadBalancingMode.SNAT.value},
        "ipam": {"mode": DEFAULT_IPAM_MODE},
        "snatToUpstreamDNS": {"enabled": False},
        "snatOutOfCluster": {"enabled": False},
    }


def _hostname(netloc: str) -> str:
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        end = host.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in host {host!r}")
        rest = host[end + 1 :]
        if rest and (not rest.startswith(":") or not rest[1:].isdigit() and rest[1:]):
            raise ValueError(f"invalid port {rest!r} after host")
        return host[1:end]
    name, sep, port = host.rpartition(":")
    if not sep:
        return host
    if port and not port.isdigit():
        raise ValueError(f"invalid port {':' + port!r} after host")
    return name


def get_k8s_service_host(cluster: Optional[Cluster]) -> str:
    """Return the host name of the shoot's external API server address."""
    if cluster is None:
        raise ChartValuesError("cluster missing when retrieving kubernetes service host")
    if cluster.shoot is None:
        raise ChartValuesError("shoot missing when retrieving kubernetes service host")
    if not cluster.shoot.advertised_addresses:
        raise ChartValuesError(
            "advertised addresses missing in shoot status when retrieving kubernetes service host"
        )
    for address in cluster.shoot.advertised_addresses:
        if address.name == "external":
            try:
                return _hostname(urlsplit(address.url).netloc)
            except ValueError as exc:
                raise ChartValuesError(
                    f"error while parsing external kubernetes service host: {exc}"
                ) from exc
    raise ChartValuesError("external address not found among advertised adresses")


def _generate(
    config: Optional[NetworkConfig],
    network: Network,
    cluster: Optional[Cluster],
    ipam_mode: str,
    image_finder: ImageFinder,
) -> tuple[dict[str, Any], dict[str, Any]]:
    requirements = _requirements()
    values = _global(image_finder)

    if network.pod_cidr:
        values["podCIDR"] = network.pod_cidr

    if cluster is None or cluster.shoot is None:
        raise ChartValuesError("cluster with shoot is required to compute chart values")
    shoot = cluster.shoot

    if shoot.networking_nodes is not None:
        values["nodeCIDR"] = shoot.networking_nodes

    # The operator runs at most once per node; HA needs room for two.
    if shoot.max_worker_nodes() < 2:
        values["operatorHighAvailability"]["enabled"] = False

    kube_proxy = shoot.kube_proxy
    if kube_proxy is not None and kube_proxy.enabled is not None and not kube_proxy.enabled:
        values["kubeProxyReplacement"] = KubeProxyReplacementMode.STRICT.value
        values["images"][KUBE_PROXY_IMAGE_NAME] = image_finder(
            KUBE_PROXY_IMAGE_NAME, shoot.kubernetes_version
        )
        endpoint = config.kube_proxy if config is not None else None
        if (
            endpoint is not None
            and endpoint.service_host is not None
            and endpoint.service_port is not None
        ):
            values["k8sServiceHost"] = endpoint.service_host
            values["k8sServicePort"] = endpoint.service_port
        else:
            values["k8sServiceHost"] = get_k8s_service_host(cluster)
        if not values["k8sServiceHost"]:
            raise ChartValuesError(
                "required kubernetes service host missing while running without kube-proxy"
            )
        values["nodePort"]["enabled"] = True

    if shoot.node_local_dns_enabled():
        values["nodeLocalDNS"]["enabled"] = True
        values["localRedirectPolicy"]["enabled"] = True

    if shoot.psp_disabled:
        values["psp"]["enabled"] = False

    if config is None:
        return requirements, values

    # Never re-enable PSPs that the shoot has disabled.
    if values["psp"]["enabled"] and config.psp_enabled is not None:
        values["psp"]["enabled"] = config.psp_enabled

    if config.hubble is not None and config.hubble.enabled:
        requirements["hubble"]["enabled"] = True

    if config.store is not None and config.store != Store.KUBERNETES:
        raise ChartValuesError(f"{_plain(config.store)} is not a supported value for field store")

    if config.ipv6 is not None:
        values["ipv6"]["enabled"] = config.ipv6.enabled
    if config.bpf_socket_lb_hostns_only is not None:
        values["bpfSocketLBHostnsOnly"]["enabled"] = config.bpf_socket_lb_hostns_only.enabled
    if config.tunnel_mode is not None:
        values["tunnel"] = _plain(config.tunnel_mode)
    if config.debug is not None:
        values["debug"]["enabled"] = config.debug
    if config.egress_gateway is not None:
        values["egressGateway"]["enabled"] = config.egress_gateway.enabled
    if config.mtu is not None:
        values["mtu"] = config.mtu
    if config.devices:
        values["devices"] = list(config.devices)
    if config.load_balancing_mode is not None:
        values["bpf"] = {"lbMode": _plain(config.load_balancing_mode)}
    if config.ipv4_native_routing_cidr_enabled:
        values["ipv4NativeRoutingCIDR"] = NATIVE_ROUTING_ALL
    if config.snat_to_upstream_dns is not None and config.snat_to_upstream_dns.enabled:
        values["snatToUpstreamDNS"]["enabled"] = True
    if config.snat_out_of_cluster is not None and config.snat_out_of_cluster.enabled:
        values["snatOutOfCluster"]["enabled"] = True

    values["ipam"]["mode"] = ipam_mode
    return requirements, values


def compute_cilium_chart_values(
    config: Optional[NetworkConfig],
    network: Network,
    cluster: Optional[Cluster],
    ipam_mode: str,
    image_finder: ImageFinder,
) -> dict[str, Any]:
    """Compute the values of the Cilium chart as ``{"requirements": ..., "global": ...}``."""
    try:
        requirements, values = _generate(config, network, cluster, ipam_mode, image_finder)
    except ChartValuesError as exc:
        raise ChartValuesError(f"error when generating config values {exc}") from exc
    return {"requirements": requirements, "global": values}
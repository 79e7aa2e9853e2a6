"""Reconcile-time decisions of the Network controller."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .api import NetworkConfig, SnatOutOfCluster, SnatToUpstreamDNS, TunnelMode
from .charts import CILIUM_CONFIG_KEY, DEFAULT_IPAM_MODE
from .models import ANNOTATION_NODE_LOCAL_DNS, Shoot

# Name of the secret and managed resource holding the rendered Cilium chart.
CILIUM_CONFIG_SECRET_NAME = "extension-networking-cilium-config"
# Name of the managed resource holding the shoot webhooks.
SHOOT_WEBHOOKS_RESOURCE_NAME = "extension-cilium-shoot-webhooks"

CILIUM_CONFIGMAP_NAMESPACE = "kube-system"
CILIUM_CONFIGMAP_NAME = "cilium-config"

_KUBE_PROXY_MODE_FIELD = "spec.kubernetes.kubeProxy.mode"


class ForbiddenError(ValueError):
    """Raised when a field holds a value that is not allowed."""

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(f"{field}: Forbidden: {detail}")
        self.field = field
        self.detail = detail


def normalize_network_config(config: Optional[NetworkConfig]) -> Optional[NetworkConfig]:
    """Apply the overlay setting to the tunnel, routing and SNAT options.

    The config is changed in place and returned; ``None`` is passed through.
    """
    if config is None or config.overlay is None:
        return config

    if config.overlay.enabled:
        if config.tunnel_mode is None or config.tunnel_mode == TunnelMode.DISABLED:
            # vxlan is the default overlay network
            config.tunnel_mode = TunnelMode.VXLAN
        config.ipv4_native_routing_cidr_enabled = False
    else:
        config.tunnel_mode = TunnelMode.DISABLED
        config.ipv4_native_routing_cidr_enabled = True
        config.snat_out_of_cluster = SnatOutOfCluster(enabled=True)
        if config.snat_to_upstream_dns is None:
            config.snat_to_upstream_dns = SnatToUpstreamDNS(enabled=True)
    return config


def validate_kube_proxy_mode(shoot: Shoot) -> None:
    """Reject kube-proxy in IPVS mode together with node local DNS."""
    kube_proxy = shoot.kube_proxy
    if kube_proxy is None or not kube_proxy.enabled or kube_proxy.mode != "IPVS":
        return
    if shoot.annotations.get(ANNOTATION_NODE_LOCAL_DNS) == "true":
        raise ForbiddenError(
            _KUBE_PROXY_MODE_FIELD,
            "Running kube-proxy with IPVS mode is forbidden in conjunction with "
            "node local dns enabled",
        )


def ipam_mode_from_configmap(configmap: Optional[Mapping[str, Any]]) -> str:
    """Return the IPAM mode recorded in the shoot's cilium-config ConfigMap."""
    if configmap is not None:
        data = configmap.get("data") or {}
        if "ipam" in data:
            return data["ipam"]
    return DEFAULT_IPAM_MODE


def cilium_secret_data(manifest: bytes | str) -> dict[str, bytes]:
    """Return the data of the secret that carries the rendered Cilium chart."""
    payload = manifest.encode("utf-8") if isinstance(manifest, str) else bytes(manifest)
    return {CILIUM_CONFIG_KEY: payload}
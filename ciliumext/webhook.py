"""Mutating webhooks: node-local-dns adjustments in shoots and shoot admission defaults."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, MutableMapping

from .api import RELEASE_NAME
from .models import KubeProxyConfig, Shoot

# Name and path of the admission webhook that mutates Shoot resources.
ADMISSION_WEBHOOK_NAME = "mutator"
ADMISSION_WEBHOOK_PATH = "/webhooks/mutate"

NODE_LOCAL_DNS_DAEMONSET = "node-local-dns"
NODE_CACHE_CONTAINER = "node-cache"
NODE_CACHE_CILIUM_ARGS = ("-skipteardown=true", "-setupinterface=false", "-setupiptables=false")

_NODE_LOCAL_DNS_CONFIGMAP = re.compile(r"^node-local-dns-.*")
_BIND = re.compile(r"bind.*")
_HEALTH = re.compile(r"health.*(:[0-9]+)")

_log = logging.getLogger("shoot-mutator")


def _log_mutation(kind: str, namespace: str, name: str) -> None:
    _log.info("Mutating resource kind=%s namespace=%s name=%s", kind, namespace, name)


def mutate_node_local_dns_configmap(configmap: MutableMapping[str, Any]) -> None:
    """Make node-local-dns bind on all addresses and serve health on its port only."""
    data = configmap.get("data")
    if data is None:
        data = {}
        configmap["data"] = data
    corefile = data.get("Corefile", "")
    corefile = _BIND.sub("bind 0.0.0.0", corefile)
    corefile = _HEALTH.sub(r"health \1", corefile)
    data["Corefile"] = corefile


def mutate_node_local_dns_daemonset(daemonset: MutableMapping[str, Any]) -> None:
    """Take node-local-dns off the host network and let Cilium handle its interface."""
    pod_spec = daemonset.get("spec", {}).get("template", {}).get("spec")
    if pod_spec is None:
        return
    if pod_spec.get("hostNetwork"):
        pod_spec["hostNetwork"] = False

    for container in pod_spec.get("containers") or []:
        if container.get("name") != NODE_CACHE_CONTAINER:
            continue
        container["args"] = [*(container.get("args") or []), *NODE_CACHE_CILIUM_ARGS]
        http_get = (container.get("livenessProbe") or {}).get("httpGet")
        if http_get is not None:
            http_get["host"] = ""
        break


class ShootResourceMutator:
    """Mutates node-local-dns resources inside a shoot cluster.

    Objects are Kubernetes manifests in dictionary form and are changed in place.
    """

    def mutate(self, new: Any, old: Any = None) -> None:
        """Mutate ``new`` if it is a node-local-dns ConfigMap or DaemonSet."""
        if not isinstance(new, MutableMapping):
            raise TypeError(
                f"could not create accessor during webhook: {type(new).__name__} is not an object"
            )
        metadata: Mapping[str, Any] = new.get("metadata") or {}
        if metadata.get("deletionTimestamp") is not None:
            return

        kind = new.get("kind", "")
        name = metadata.get("name", "")
        namespace = metadata.get("namespace", "")

        if kind == "ConfigMap" and _NODE_LOCAL_DNS_CONFIGMAP.match(name):
            _log_mutation(kind, namespace, name)
            mutate_node_local_dns_configmap(new)
        elif kind == "DaemonSet" and name == NODE_LOCAL_DNS_DAEMONSET:
            _log_mutation(kind, namespace, name)
            mutate_node_local_dns_daemonset(new)


class AdmissionShootMutator:
    """Disables kube-proxy on newly created shoots."""

    def mutate(self, new: Any, old: Any = None) -> None:
        """Turn kube-proxy off on ``new`` unless the shoot already exists."""
        if not isinstance(new, Shoot):
            raise TypeError(f"wrong object type {type(new).__name__}")
        if old is not None:
            # Existing clusters are left as they are.
            return
        if new.kube_proxy is None:
            new.kube_proxy = KubeProxyConfig()
        new.kube_proxy.enabled = False


def is_cilium_shoot(obj: Any) -> bool:
    """Whether ``obj`` is a shoot using Cilium networking."""
    if not isinstance(obj, Shoot):
        return False
    return obj.networking_type == RELEASE_NAME
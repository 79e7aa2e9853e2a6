"""Views of the cluster resources that the extension reads and mutates."""

from __future__ import annotations

from dataclasses import dataclass, field

ANNOTATION_NODE_LOCAL_DNS = "alpha.featuregates.shoot.gardener.cloud/node-local-dns"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}


@dataclass
class Worker:
    """A worker pool of a shoot."""

    name: str = ""
    minimum: int = 0
    maximum: int = 0


@dataclass
class KubeProxyConfig:
    """kube-proxy settings of a shoot."""

    enabled: bool | None = None
    mode: str | None = None


@dataclass
class AdvertisedAddress:
    """An address under which the shoot's API server is reachable."""

    name: str
    url: str


@dataclass
class Shoot:
    """The parts of a shoot cluster that the extension works with."""

    name: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    networking_type: str = ""
    networking_nodes: str | None = None
    kubernetes_version: str = ""
    kube_proxy: KubeProxyConfig | None = None
    workers: list[Worker] = field(default_factory=list)
    node_local_dns: bool | None = None
    psp_disabled: bool = False
    advertised_addresses: list[AdvertisedAddress] = field(default_factory=list)

    def node_local_dns_enabled(self) -> bool:
        """Whether node local DNS is on, by spec or by the legacy annotation."""
        from_annotation = self.annotations.get(ANNOTATION_NODE_LOCAL_DNS, "") in _TRUE_WORDS
        return bool(self.node_local_dns) or from_annotation

    def max_worker_nodes(self) -> int:
        """The largest number of nodes the worker pools together can hold."""
        return sum(worker.maximum for worker in self.workers)


@dataclass
class Cluster:
    """A cluster as handed to the extension's controllers."""

    name: str = ""
    shoot: Shoot | None = None


@dataclass
class Network:
    """A Network extension resource."""

    namespace: str = ""
    pod_cidr: str = ""
    provider_config: bytes | None = None
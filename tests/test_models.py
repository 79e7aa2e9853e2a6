import pytest

from ciliumext.models import (
    ANNOTATION_NODE_LOCAL_DNS,
    Cluster,
    KubeProxyConfig,
    Network,
    Shoot,
    Worker,
)


def test_node_local_dns_off_by_default():
    assert Shoot().node_local_dns_enabled() is False


def test_node_local_dns_from_spec():
    assert Shoot(node_local_dns=True).node_local_dns_enabled() is True
    assert Shoot(node_local_dns=False).node_local_dns_enabled() is False


@pytest.mark.parametrize("value", ["true", "1", "True", "t"])
def test_node_local_dns_from_annotation(value):
    shoot = Shoot(annotations={ANNOTATION_NODE_LOCAL_DNS: value})
    assert shoot.node_local_dns_enabled() is True


@pytest.mark.parametrize("value", ["false", "0", "yes", ""])
def test_node_local_dns_annotation_not_true(value):
    shoot = Shoot(annotations={ANNOTATION_NODE_LOCAL_DNS: value})
    assert shoot.node_local_dns_enabled() is False


def test_spec_wins_over_false_annotation():
    shoot = Shoot(node_local_dns=True, annotations={ANNOTATION_NODE_LOCAL_DNS: "false"})
    assert shoot.node_local_dns_enabled() is True


def test_max_worker_nodes_empty():
    assert Shoot().max_worker_nodes() == 0


def test_max_worker_nodes_single_pool():
    assert Shoot(workers=[Worker(name="local", minimum=2, maximum=4)]).max_worker_nodes() == 4


def test_max_worker_nodes_grows_with_pools():
    shoot = Shoot(workers=[Worker(name="a", maximum=3)])
    before = shoot.max_worker_nodes()
    shoot.workers.append(Worker(name="b", maximum=7))
    assert shoot.max_worker_nodes() - before == 7


def test_cluster_and_network_hold_values():
    shoot = Shoot(name="s", kube_proxy=KubeProxyConfig(enabled=False, mode="IPVS"))
    cluster = Cluster(name="shoot--a--b", shoot=shoot)
    network = Network(namespace="shoot--a--b", pod_cidr="10.0.0.0/16")
    assert cluster.shoot.kube_proxy.mode == "IPVS"
    assert network.provider_config is None
    assert network.pod_cidr == "10.0.0.0/16"
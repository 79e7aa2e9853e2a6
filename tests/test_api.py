import pytest

from ciliumext.api import (
    API_VERSION,
    CHART_PATH,
    GROUP_NAME,
    KIND,
    DecodeError,
    Hubble,
    KubeProxy,
    LoadBalancingMode,
    NetworkConfig,
    Overlay,
    SnatOutOfCluster,
    Store,
    TunnelMode,
    decode_network_config,
    network_config_from_provider_config,
)

E2E_PROVIDER_CONFIG = (
    b'{"apiVersion":"cilium.networking.extensions.gardener.cloud/v1alpha1",'
    b'"kind":"NetworkConfig","hubble":{"enabled":true},"overlay":{"enabled":true}}'
)


def test_api_version_is_group_and_version():
    assert API_VERSION == "cilium.networking.extensions.gardener.cloud/v1alpha1"
    assert API_VERSION.startswith(GROUP_NAME)
    assert KIND == "NetworkConfig"


def test_chart_path_points_at_internal_cilium_chart():
    assert CHART_PATH.replace("\\", "/") == "charts/internal/cilium"


def test_decode_e2e_provider_config():
    config = network_config_from_provider_config(E2E_PROVIDER_CONFIG)
    assert config.hubble == Hubble(enabled=True)
    assert config.overlay == Overlay(enabled=True)
    assert config.tunnel_mode is None
    assert config.devices == []


def test_missing_provider_config_raises():
    with pytest.raises(DecodeError, match="provider config is not set"):
        network_config_from_provider_config(None)


def test_round_trip_full_config():
    config = NetworkConfig(
        debug=True,
        psp_enabled=False,
        kube_proxy=KubeProxy(service_host="api.example.com", service_port=443),
        hubble=Hubble(enabled=True),
        tunnel_mode=TunnelMode.GENEVE,
        store=Store.KUBERNETES,
        mtu=1400,
        devices=["eth0", "eth1"],
        load_balancing_mode=LoadBalancingMode.DSR,
        ipv4_native_routing_cidr_enabled=True,
        snat_out_of_cluster=SnatOutOfCluster(enabled=True),
    )
    assert NetworkConfig.from_dict(config.to_dict()) == config


def test_to_dict_uses_wire_names_and_omits_unset():
    config = NetworkConfig(tunnel_mode=TunnelMode.VXLAN, psp_enabled=True)
    out = config.to_dict()
    assert out == {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "tunnel": "vxlan",
        "psp": True,
    }


def test_enum_values_are_coerced():
    config = decode_network_config('{"tunnel": "disabled", "loadBalancingMode": "hybrid"}')
    assert config.tunnel_mode is TunnelMode.DISABLED
    assert config.load_balancing_mode is LoadBalancingMode.HYBRID


def test_unknown_store_value_kept_verbatim():
    config = decode_network_config('{"store": "etcd"}')
    assert config.store == "etcd"
    assert not isinstance(config.store, Store)


def test_missing_kind_and_api_version_default_to_network_config():
    config = decode_network_config('{"debug": true}')
    assert config.debug is True


def test_yaml_input_is_accepted():
    config = decode_network_config("kubeproxy:\n  k8sServiceHost: api.example.com\nmtu: 1450\n")
    assert config.kube_proxy == KubeProxy(service_host="api.example.com")
    assert config.mtu == 1450


def test_unknown_field_rejected():
    with pytest.raises(DecodeError, match="unknown"):
        decode_network_config('{"notAField": true}')


def test_unknown_nested_field_rejected():
    with pytest.raises(DecodeError, match="unknown"):
        decode_network_config('{"hubble": {"enabled": true, "extra": 1}}')


def test_wrong_kind_rejected():
    with pytest.raises(DecodeError, match="kind"):
        decode_network_config('{"kind": "ControllerConfiguration"}')


def test_wrong_api_version_rejected():
    with pytest.raises(DecodeError, match="apiVersion"):
        decode_network_config('{"apiVersion": "v1", "kind": "NetworkConfig"}')


def test_duplicate_keys_rejected():
    with pytest.raises(DecodeError, match="duplicate"):
        decode_network_config('{"debug": true, "debug": false}')


@pytest.mark.parametrize(
    "document",
    [
        '{"debug": "yes"}',
        '{"mtu": "1400"}',
        '{"mtu": true}',
        '{"devices": "eth0"}',
        '{"devices": [1]}',
        '{"kubeproxy": {"k8sServicePort": 4294967296}}',
        '{"hubble": true}',
        "[1, 2]",
    ],
)
def test_type_mismatch_rejected(document):
    with pytest.raises(DecodeError):
        decode_network_config(document)


def test_empty_document_rejected():
    with pytest.raises(DecodeError):
        decode_network_config(b"")


def test_null_nested_enabled_defaults_to_false():
    config = decode_network_config('{"ipv6": {"enabled": null}}')
    assert config.ipv6 is not None
    assert config.ipv6.enabled is False
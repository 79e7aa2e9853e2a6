# ciliumext

Configuration logic for running Cilium as the network plugin of managed
Kubernetes clusters. The package is a library with these modules:

- `ciliumext.api`: the `NetworkConfig` provider configuration, with its
  enums (`TunnelMode`, `LoadBalancingMode`, `KubeProxyReplacementMode`,
  `Store` and others), its nested settings, and strict decoding from JSON
  or YAML;
- `ciliumext.config`: the controller configuration file
  (`ControllerConfiguration`, `load`, `load_from_file`, `ConfigOptions`);
- `ciliumext.models`: plain models of the cluster, shoot and network
  resources (`Cluster`, `Shoot`, `Worker`, `KubeProxyConfig`,
  `AdvertisedAddress`, `Network`);
- `ciliumext.charts`: computation of the values handed to the Cilium chart;
- `ciliumext.webhook`: mutations applied to node-local-dns resources and to
  new shoots;
- `ciliumext.controller`: reconcile-time helpers such as overlay
  normalisation and IPAM mode lookup.

## Installation

```
pip install .
```

Add the `test` extra to install the test dependencies:

```
pip install ".[test]"
```

## Decoding a provider configuration

```python
from ciliumext.api import decode_network_config, TunnelMode

config = decode_network_config(
    b'{"apiVersion": "cilium.networking.extensions.gardener.cloud/v1alpha1",'
    b' "kind": "NetworkConfig", "hubble": {"enabled": true}, "tunnel": "geneve"}'
)
assert config.hubble.enabled
assert config.tunnel_mode is TunnelMode.GENEVE
```

Unknown fields, duplicate keys, wrong types, a wrong `apiVersion` or `kind`,
and malformed documents raise `DecodeError`. `NetworkConfig.to_dict()`
returns the wire form again, leaving out unset fields.
`network_config_from_provider_config` decodes the same way and also raises
`DecodeError` when it is given `None`.

## Loading the controller configuration

```python
from ciliumext.config import ConfigOptions

options = ConfigOptions(config_file_path="controller-config.yaml")
options.complete()
configuration = options.completed()
print(configuration.health_check_config)
```

`complete()` raises `ConfigError` when no path is set, and `completed()`
raises it when `complete()` has not succeeded. `load` and `load_from_file`
return a `ControllerConfiguration`; an empty document gives an empty
configuration, and a document that cannot be decoded raises `ConfigError`.
Sync periods are written as durations such as `30s` or `1m30s`.

## Computing chart values

```python
from ciliumext.charts import compute_cilium_chart_values

values = compute_cilium_chart_values(
    config,
    network,
    cluster,
    "kubernetes",
    image_finder=lambda name, version=None: f"registry.example.com/{name}",
)
```

`image_finder` resolves image names such as `cilium-agent` to image
references; for `kube-proxy` it is also given the shoot's Kubernetes
version. The result is a dictionary with `requirements` and `global`
sections. `ChartValuesError` is raised when the cluster or its shoot is
missing, when a shoot running without kube-proxy has no service host
configured and no external advertised address, and when `store` is set to
anything other than `kubernetes`. `get_k8s_service_host` returns the host
name of the shoot's `external` advertised address.

## Webhook mutations

`ShootResourceMutator.mutate` works on manifests in dictionary form and
changes them in place: ConfigMaps named `node-local-dns-*` get their
Corefile rewritten to bind on `0.0.0.0`, and the `node-local-dns` DaemonSet
is taken off the host network and its `node-cache` container given the
arguments it needs next to Cilium. Objects being deleted are left alone.

`AdmissionShootMutator.mutate` disables kube-proxy on a `Shoot` when no old
object is given, that is, when the shoot is being created.
`is_cilium_shoot` tells whether an object is a shoot using Cilium
networking.

## Controller helpers

- `normalize_network_config` applies the `overlay` setting to the tunnel
  mode, native routing and SNAT options.
- `validate_kube_proxy_mode` raises `ForbiddenError` for kube-proxy in IPVS
  mode together with node local DNS.
- `ipam_mode_from_configmap` reads the IPAM mode from a `cilium-config`
  ConfigMap, defaulting to `kubernetes`.
- `cilium_secret_data` builds the data of the secret that carries the
  rendered chart.

## What the package does not do

It is a library only and has no command. It does not talk to a Kubernetes
API server, run a controller or webhook server, render Helm charts, or
create secrets and managed resources; it computes values and mutations that
a caller then applies. It does not read an image list itself: image
references come from the `image_finder` the caller supplies.

## Running the tests

```
pytest
```
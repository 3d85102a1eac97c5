# sloth

Python building blocks for declaring service level objectives (SLOs) for
Prometheus and for managing `PrometheusServiceLevel` resources on a
Kubernetes API server.

## Modules

- `sloth.prometheus_spec` – the `prometheus/v1` YAML specification:
  `Spec`, `SLO`, `SLI`, `SLIRaw`, `SLIEvents`, `SLIPlugin`, `Alerting` and
  `Alert` dataclasses. `parse_spec` reads YAML into a `Spec` and `dump_spec`
  writes it back; `spec_from_dict` and `spec_to_dict` work on plain
  dictionaries. Malformed input raises `SpecError`.
- `sloth.sli_plugin` – the `SLIPlugin` protocol that SLI plugins follow:
  a callable taking `meta`, `labels` and `options` string mappings and
  returning a query string. `plugin_meta(service, slo, objective)` builds
  the `meta` mapping (`service`, `slo`, `objective`).
- `sloth.k8s_register` – group, version, kind and resource identifiers of
  the `sloth.slok.dev/v1` API (`GroupVersion`, `GroupVersionKind`,
  `GroupVersionResource` and friends), with the helpers `kind`,
  `version_kind`, `resource` and `known_kinds`.
- `sloth.k8s_types` – the `PrometheusServiceLevel` and
  `PrometheusServiceLevelList` resources with their spec and status types.
  `to_dict` produces the wire form; `service_level_from_dict` and
  `service_level_list_from_dict` decode it and raise `ResourceError` on
  bad input.
- `sloth.client` – a REST client built on `requests`.
- `sloth.fake` – an in-memory stand-in for the client, for tests.

## Installation

```
pip install .
```

With the test requirements:

```
pip install ".[test]"
```

## Reading a spec

```python
from sloth.prometheus_spec import parse_spec, dump_spec

spec = parse_spec("""
version: "prometheus/v1"
service: "myservice"
labels:
  owner: "myteam"
slos:
  - name: "requests-availability"
    objective: 99.9
    sli:
      events:
        error_query: sum(rate(http_request_duration_seconds_count{job="myservice",code=~"(5..|429)"}[{{.window}}]))
        total_query: sum(rate(http_request_duration_seconds_count{job="myservice"}[{{.window}}]))
    alerting:
      name: MyServiceHighErrorRate
      page_alert:
        labels:
          severity: critical
      ticket_alert:
        disable: true
""")

print(spec.service, spec.slos[0].objective)
print(dump_spec(spec))
```

The `{{.window}}` placeholder in the queries is kept as written.

## Working with the Kubernetes resource

```python
from sloth.client import RestConfig, new_for_config

config = RestConfig(host="https://kubernetes.example.com", bearer_token="token")
clientset = new_for_config(config)
levels = clientset.sloth_v1().prometheus_service_levels("monitoring")

for item in levels.list(label_selector="prometheus=default").items:
    print(item.metadata.name, item.spec.service)
```

`PrometheusServiceLevels` offers `get`, `list`, `watch` (a generator of
`WatchEvent`), `create`, `update`, `update_status`, `delete`,
`delete_collection` and `patch` (with a `PatchType` or a content type).
An empty namespace addresses all namespaces. When `RestConfig.qps` is set
and no `rate_limiter` is given, `new_for_config` adds a token-bucket rate
limiter and requires `burst` to be greater than 0. Error responses from
the server are raised as `ApiError`.

## Testing with the fake client

```python
from sloth.fake import FakeSlothV1
from sloth.k8s_types import ObjectMeta, PrometheusServiceLevel

fake = FakeSlothV1()
levels = fake.prometheus_service_levels("monitoring")
levels.create(PrometheusServiceLevel(metadata=ObjectMeta(name="svc")))
print(levels.get("svc").metadata.namespace)  # monitoring
print([action.verb for action in fake.actions])  # ['create', 'get']
```

`FakeSlothV1` records every call as an `Action`, supports label selectors
for `list` and `delete_collection`, merge and JSON patches, and watchers
that receive `ADDED`, `MODIFIED` and `DELETED` events. It raises
`NotFoundError` and `AlreadyExistsError` where a server would refuse the
call. `prepend_reactor(verb, reactor)` lets a test answer or fail calls
before the in-memory store sees them.

## What this package does not do

It does not generate Prometheus recording or alerting rules from a spec,
does not load or run SLI plugins, has no command-line tool, and does not
run a Kubernetes controller. It provides the data models, the plugin
contract and the clients such tools are built on.
import pytest

from sloth.k8s_register import (
    GROUP_NAME,
    SCHEME_GROUP_VERSION,
    GroupKind,
    GroupResource,
    GroupVersion,
    GroupVersionKind,
    GroupVersionResource,
    kind,
    known_kinds,
    resource,
    version_kind,
)


def test_group_name_and_api_version():
    gvk = version_kind("PrometheusServiceLevel")
    assert gvk.group == GROUP_NAME == "sloth.slok.dev"
    assert str(GroupVersion(gvk.group, gvk.version)) == "sloth.slok.dev/v1"
    assert str(SCHEME_GROUP_VERSION) == "sloth.slok.dev/v1"


def test_api_version_without_group_is_only_version():
    assert str(GroupVersion("", "v1")) == "v1"


def test_kind_is_group_qualified():
    assert kind("PrometheusServiceLevel") == GroupKind("sloth.slok.dev", "PrometheusServiceLevel")


def test_version_kind_is_fully_qualified():
    gvk = version_kind("PrometheusServiceLevel")
    assert gvk == GroupVersionKind("sloth.slok.dev", "v1", "PrometheusServiceLevel")
    assert gvk.group_kind() == kind("PrometheusServiceLevel")


def test_resource_is_group_qualified():
    assert resource("prometheusservicelevels") == GroupResource(
        "sloth.slok.dev", "prometheusservicelevels"
    )


def test_with_resource_round_trip():
    gvr = SCHEME_GROUP_VERSION.with_resource("prometheusservicelevels")
    assert gvr == GroupVersionResource("sloth.slok.dev", "v1", "prometheusservicelevels")
    assert gvr.group_resource() == resource("prometheusservicelevels")


def test_known_kinds():
    kinds = {gvk.kind for gvk in known_kinds()}
    assert kinds == {"PrometheusServiceLevel", "PrometheusServiceLevelList"}
    assert all(gvk.group == GROUP_NAME for gvk in known_kinds())


def test_identifiers_are_hashable_and_frozen():
    assert len({kind("A"), kind("A"), kind("B")}) == 2
    with pytest.raises(AttributeError):
        SCHEME_GROUP_VERSION.group = "other"  # type: ignore[misc]
"""Group, version, kind and resource identifiers of the Sloth Kubernetes API."""

from __future__ import annotations

from dataclasses import dataclass

GROUP_NAME = "sloth.slok.dev"
VERSION = "v1"

KIND_SERVICE_LEVEL = "PrometheusServiceLevel"
KIND_SERVICE_LEVEL_LIST = "PrometheusServiceLevelList"
RESOURCE_SERVICE_LEVELS = "prometheusservicelevels"


@dataclass(frozen=True)
class GroupKind:
    """A kind qualified by its API group."""

    group: str
    kind: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}" if self.group else self.kind


@dataclass(frozen=True)
class GroupVersionKind:
    """A kind qualified by its API group and version."""

    group: str
    version: str
    kind: str

    def group_kind(self) -> GroupKind:
        """Drop the version."""
        return GroupKind(self.group, self.kind)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


@dataclass(frozen=True)
class GroupResource:
    """A resource qualified by its API group."""

    group: str
    resource: str

    def __str__(self) -> str:
        return f"{self.resource}.{self.group}" if self.group else self.resource


@dataclass(frozen=True)
class GroupVersionResource:
    """A resource qualified by its API group and version."""

    group: str
    version: str
    resource: str

    def group_resource(self) -> GroupResource:
        """Drop the version."""
        return GroupResource(self.group, self.resource)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Resource={self.resource}"


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with one of its versions."""

    group: str
    version: str

    def with_kind(self, kind: str) -> GroupVersionKind:
        """Qualify a kind with this group and version."""
        return GroupVersionKind(self.group, self.version, kind)

    def with_resource(self, resource: str) -> GroupVersionResource:
        """Qualify a resource with this group and version."""
        return GroupVersionResource(self.group, self.version, resource)

    def __str__(self) -> str:
        """The ``apiVersion`` form: ``group/version``, or the version alone."""
        return f"{self.group}/{self.version}" if self.group else self.version


SCHEME_GROUP_VERSION = GroupVersion(GROUP_NAME, VERSION)


def version_kind(kind: str) -> GroupVersionKind:
    """Qualify an unqualified kind with the Sloth group and version."""
    return SCHEME_GROUP_VERSION.with_kind(kind)


def kind(kind: str) -> GroupKind:
    """Qualify an unqualified kind with the Sloth group."""
    return version_kind(kind).group_kind()


def resource(resource: str) -> GroupResource:
    """Qualify an unqualified resource with the Sloth group."""
    return SCHEME_GROUP_VERSION.with_resource(resource).group_resource()


def known_kinds() -> tuple[GroupVersionKind, ...]:
    """The kinds this API group and version registers."""
    return (
        version_kind(KIND_SERVICE_LEVEL),
        version_kind(KIND_SERVICE_LEVEL_LIST),
    )
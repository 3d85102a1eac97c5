"""Kubernetes resource types of the ``sloth.slok.dev/v1`` API.

A ``PrometheusServiceLevel`` is the expected service quality level using
Prometheus as the backend.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .k8s_register import KIND_SERVICE_LEVEL, KIND_SERVICE_LEVEL_LIST, SCHEME_GROUP_VERSION

API_VERSION = str(SCHEME_GROUP_VERSION)


class ResourceError(ValueError):
    """Raised when a resource document cannot be decoded."""


# Decoding helpers.


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ResourceError(f"{where}: expected an object, got {type(value).__name__}")
    return value


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ResourceError(f"{where}: expected a string, got {type(value).__name__}")
    return value


def _string_map(value: Any, where: str) -> dict[str, str]:
    return {
        _string(key, where): _string(item, f"{where}.{key}")
        for key, item in _mapping(value, where).items()
    }


def _float(value: Any, where: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResourceError(f"{where}: expected a number, got {type(value).__name__}")
    return float(value)


def _int(value: Any, where: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ResourceError(f"{where}: expected an integer, got {type(value).__name__}")
    return value


def _bool(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ResourceError(f"{where}: expected a boolean, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ResourceError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(value: Any, where: str) -> datetime | None:
    if value is None:
        return None
    text = _string(value, where)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as err:
        raise ResourceError(f"{where}: invalid timestamp {value!r}") from err
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _check_type_meta(m: Mapping[str, Any], expected_kind: str) -> None:
    api_version = m.get("apiVersion")
    if api_version not in (None, "", API_VERSION):
        raise ResourceError(f"unexpected apiVersion {api_version!r}, want {API_VERSION!r}")
    found_kind = m.get("kind")
    if found_kind not in (None, "", expected_kind):
        raise ResourceError(f"unexpected kind {found_kind!r}, want {expected_kind!r}")


# Metadata.


@dataclass
class ObjectMeta:
    """Standard object metadata."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    uid: str = ""
    resource_version: str = ""
    generation: int = 0
    creation_timestamp: datetime | None = None
    owner_references: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out empty fields."""
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.namespace:
            out["namespace"] = self.namespace
        if self.uid:
            out["uid"] = self.uid
        if self.resource_version:
            out["resourceVersion"] = self.resource_version
        if self.generation:
            out["generation"] = self.generation
        if self.creation_timestamp is not None:
            out["creationTimestamp"] = _format_time(self.creation_timestamp)
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.owner_references:
            out["ownerReferences"] = [dict(ref) for ref in self.owner_references]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ObjectMeta:
        """Decode from wire form."""
        m = _mapping(data, "metadata")
        return cls(
            name=_string(m.get("name"), "metadata.name"),
            namespace=_string(m.get("namespace"), "metadata.namespace"),
            labels=_string_map(m.get("labels"), "metadata.labels"),
            annotations=_string_map(m.get("annotations"), "metadata.annotations"),
            uid=_string(m.get("uid"), "metadata.uid"),
            resource_version=_string(m.get("resourceVersion"), "metadata.resourceVersion"),
            generation=_int(m.get("generation"), "metadata.generation"),
            creation_timestamp=_parse_time(
                m.get("creationTimestamp"), "metadata.creationTimestamp"
            ),
            owner_references=[
                dict(_mapping(ref, "metadata.ownerReferences"))
                for ref in _list(m.get("ownerReferences"), "metadata.ownerReferences")
            ],
        )


@dataclass
class ListMeta:
    """Metadata of a resource list."""

    resource_version: str = ""
    continue_token: str = ""
    remaining_item_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out empty fields."""
        out: dict[str, Any] = {}
        if self.resource_version:
            out["resourceVersion"] = self.resource_version
        if self.continue_token:
            out["continue"] = self.continue_token
        if self.remaining_item_count is not None:
            out["remainingItemCount"] = self.remaining_item_count
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ListMeta:
        """Decode from wire form."""
        m = _mapping(data, "metadata")
        remaining = m.get("remainingItemCount")
        return cls(
            resource_version=_string(m.get("resourceVersion"), "metadata.resourceVersion"),
            continue_token=_string(m.get("continue"), "metadata.continue"),
            remaining_item_count=None
            if remaining is None
            else _int(remaining, "metadata.remainingItemCount"),
        )


# Spec types.


@dataclass
class SLIRaw:
    """An error ratio SLI that is already calculated elsewhere."""

    error_ratio_query: str = ""


@dataclass
class SLIEvents:
    """An SLI calculated as bad events divided by total events."""

    error_query: str = ""
    total_query: str = ""


@dataclass
class SLIPlugin:
    """An SLI produced by the selected SLI plugin with its options."""

    id: str = ""
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class SLI:
    """The indicator of an SLO; only one of its kinds is meant to be set."""

    raw: SLIRaw | None = None
    events: SLIEvents | None = None
    plugin: SLIPlugin | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out unset kinds."""
        out: dict[str, Any] = {}
        if self.raw is not None:
            out["raw"] = {"errorRatioQuery": self.raw.error_ratio_query}
        if self.events is not None:
            out["events"] = {
                "errorQuery": self.events.error_query,
                "totalQuery": self.events.total_query,
            }
        if self.plugin is not None:
            plugin: dict[str, Any] = {"id": self.plugin.id}
            if self.plugin.options:
                plugin["options"] = dict(self.plugin.options)
            out["plugin"] = plugin
        return out

    @classmethod
    def from_dict(cls, data: Any, where: str = "sli") -> SLI:
        """Decode from wire form."""
        m = _mapping(data, where)
        sli = cls()
        if m.get("raw") is not None:
            raw = _mapping(m["raw"], f"{where}.raw")
            sli.raw = SLIRaw(
                _string(raw.get("errorRatioQuery"), f"{where}.raw.errorRatioQuery")
            )
        if m.get("events") is not None:
            events = _mapping(m["events"], f"{where}.events")
            sli.events = SLIEvents(
                error_query=_string(events.get("errorQuery"), f"{where}.events.errorQuery"),
                total_query=_string(events.get("totalQuery"), f"{where}.events.totalQuery"),
            )
        if m.get("plugin") is not None:
            plugin = _mapping(m["plugin"], f"{where}.plugin")
            sli.plugin = SLIPlugin(
                id=_string(plugin.get("id"), f"{where}.plugin.id"),
                options=_string_map(plugin.get("options"), f"{where}.plugin.options"),
            )
        return sli


@dataclass
class Alert:
    """Configuration of one specific SLO alert (page or ticket)."""

    disable: bool = False
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out empty fields."""
        out: dict[str, Any] = {}
        if self.disable:
            out["disable"] = True
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        return out

    @classmethod
    def from_dict(cls, data: Any, where: str = "alert") -> Alert:
        """Decode from wire form."""
        m = _mapping(data, where)
        return cls(
            disable=_bool(m.get("disable"), f"{where}.disable"),
            labels=_string_map(m.get("labels"), f"{where}.labels"),
            annotations=_string_map(m.get("annotations"), f"{where}.annotations"),
        )


@dataclass
class Alerting:
    """Everything related to the alerts of an SLO."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    page_alert: Alert = field(default_factory=Alert)
    ticket_alert: Alert = field(default_factory=Alert)

    def to_dict(self) -> dict[str, Any]:
        """Wire form; the page and ticket alerts are always present."""
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        out["pageAlert"] = self.page_alert.to_dict()
        out["ticketAlert"] = self.ticket_alert.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Any, where: str = "alerting") -> Alerting:
        """Decode from wire form."""
        m = _mapping(data, where)
        return cls(
            name=_string(m.get("name"), f"{where}.name"),
            labels=_string_map(m.get("labels"), f"{where}.labels"),
            annotations=_string_map(m.get("annotations"), f"{where}.annotations"),
            page_alert=Alert.from_dict(m.get("pageAlert"), f"{where}.pageAlert"),
            ticket_alert=Alert.from_dict(m.get("ticketAlert"), f"{where}.ticketAlert"),
        )


@dataclass
class SLO:
    """A service level objective of a service."""

    name: str = ""
    description: str = ""
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    sli: SLI = field(default_factory=SLI)
    alerting: Alerting = field(default_factory=Alerting)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out empty optional fields."""
        out: dict[str, Any] = {"name": self.name}
        if self.description:
            out["description"] = self.description
        out["objective"] = self.objective
        if self.labels:
            out["labels"] = dict(self.labels)
        out["sli"] = self.sli.to_dict()
        out["alerting"] = self.alerting.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Any, where: str = "slo") -> SLO:
        """Decode from wire form."""
        m = _mapping(data, where)
        return cls(
            name=_string(m.get("name"), f"{where}.name"),
            description=_string(m.get("description"), f"{where}.description"),
            objective=_float(m.get("objective"), f"{where}.objective"),
            labels=_string_map(m.get("labels"), f"{where}.labels"),
            sli=SLI.from_dict(m.get("sli"), f"{where}.sli"),
            alerting=Alerting.from_dict(m.get("alerting"), f"{where}.alerting"),
        )


@dataclass
class PrometheusServiceLevelSpec:
    """The spec of a PrometheusServiceLevel."""

    service: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    slos: list[SLO] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, leaving out empty optional fields."""
        out: dict[str, Any] = {"service": self.service}
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.slos:
            out["slos"] = [slo.to_dict() for slo in self.slos]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> PrometheusServiceLevelSpec:
        """Decode from wire form."""
        m = _mapping(data, "spec")
        return cls(
            service=_string(m.get("service"), "spec.service"),
            labels=_string_map(m.get("labels"), "spec.labels"),
            slos=[
                SLO.from_dict(item, f"spec.slos[{n}]")
                for n, item in enumerate(_list(m.get("slos"), "spec.slos"))
            ],
        )


@dataclass
class PrometheusServiceLevelStatus:
    """What the controller reports about a PrometheusServiceLevel."""

    prom_op_rules_generated_slos: int = 0
    processed_slos: int = 0
    prom_op_rules_generated: bool = False
    last_prom_op_rules_successful_generated: datetime | None = None
    observed_generation: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Wire form."""
        out: dict[str, Any] = {
            "promOpRulesGeneratedSLOs": self.prom_op_rules_generated_slos,
            "processedSLOs": self.processed_slos,
            "promOpRulesGenerated": self.prom_op_rules_generated,
        }
        if self.last_prom_op_rules_successful_generated is not None:
            out["lastPromOpRulesSuccessfulGenerated"] = _format_time(
                self.last_prom_op_rules_successful_generated
            )
        out["observedGeneration"] = self.observed_generation
        return out

    @classmethod
    def from_dict(cls, data: Any) -> PrometheusServiceLevelStatus:
        """Decode from wire form."""
        m = _mapping(data, "status")
        return cls(
            prom_op_rules_generated_slos=_int(
                m.get("promOpRulesGeneratedSLOs"), "status.promOpRulesGeneratedSLOs"
            ),
            processed_slos=_int(m.get("processedSLOs"), "status.processedSLOs"),
            prom_op_rules_generated=_bool(
                m.get("promOpRulesGenerated"), "status.promOpRulesGenerated"
            ),
            last_prom_op_rules_successful_generated=_parse_time(
                m.get("lastPromOpRulesSuccessfulGenerated"),
                "status.lastPromOpRulesSuccessfulGenerated",
            ),
            observed_generation=_int(m.get("observedGeneration"), "status.observedGeneration"),
        )


@dataclass
class PrometheusServiceLevel:
    """A PrometheusServiceLevel resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PrometheusServiceLevelSpec = field(default_factory=PrometheusServiceLevelSpec)
    status: PrometheusServiceLevelStatus = field(default_factory=PrometheusServiceLevelStatus)
    api_version: str = API_VERSION
    kind: str = KIND_SERVICE_LEVEL

    def to_dict(self) -> dict[str, Any]:
        """Wire form of the resource."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }


@dataclass
class PrometheusServiceLevelList:
    """A list of PrometheusServiceLevel resources."""

    metadata: ListMeta = field(default_factory=ListMeta)
    items: list[PrometheusServiceLevel] = field(default_factory=list)
    api_version: str = API_VERSION
    kind: str = KIND_SERVICE_LEVEL_LIST

    def to_dict(self) -> dict[str, Any]:
        """Wire form of the list."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
            "items": [item.to_dict() for item in self.items],
        }


def service_level_from_dict(data: Any) -> PrometheusServiceLevel:
    """Decode a PrometheusServiceLevel from its wire form."""
    m = _mapping(data, "object")
    _check_type_meta(m, KIND_SERVICE_LEVEL)
    return PrometheusServiceLevel(
        metadata=ObjectMeta.from_dict(m.get("metadata")),
        spec=PrometheusServiceLevelSpec.from_dict(m.get("spec")),
        status=PrometheusServiceLevelStatus.from_dict(m.get("status")),
    )


def service_level_list_from_dict(data: Any) -> PrometheusServiceLevelList:
    """Decode a PrometheusServiceLevelList from its wire form."""
    m = _mapping(data, "list")
    _check_type_meta(m, KIND_SERVICE_LEVEL_LIST)
    return PrometheusServiceLevelList(
        metadata=ListMeta.from_dict(m.get("metadata")),
        items=[service_level_from_dict(item) for item in _list(m.get("items"), "items")],
    )
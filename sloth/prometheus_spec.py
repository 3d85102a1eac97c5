"""SLO declaration specification for the ``prometheus/v1`` format."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

VERSION = "prometheus/v1"


class SpecError(ValueError):
    """Raised when a specification cannot be decoded."""


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
    """An SLI produced by a loaded SLI plugin with the given options."""

    id: str = ""
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class SLI:
    """The indicator of an SLO; only one of its kinds is meant to be set."""

    raw: SLIRaw | None = None
    events: SLIEvents | None = None
    plugin: SLIPlugin | None = None


@dataclass
class Alert:
    """Configuration of one specific SLO alert (page or ticket)."""

    disable: bool = False
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        """Whether the alert holds only default values."""
        return not (self.disable or self.labels or self.annotations)


@dataclass
class Alerting:
    """Everything related to the alerts of an SLO."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    page_alert: Alert = field(default_factory=Alert)
    ticket_alert: Alert = field(default_factory=Alert)


@dataclass
class SLO:
    """A service level objective of a service."""

    name: str = ""
    description: str = ""
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    sli: SLI = field(default_factory=SLI)
    alerting: Alerting = field(default_factory=Alerting)


@dataclass
class Spec:
    """The root of an SLO declaration for one service."""

    version: str = ""
    service: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    slos: list[SLO] = field(default_factory=list)


# Decoding helpers.


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SpecError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise SpecError(f"{where}: expected a string, got {type(value).__name__}")


def _string_map(value: Any, where: str) -> dict[str, str]:
    return {
        _string(key, where): _string(item, f"{where}.{key}")
        for key, item in _mapping(value, where).items()
    }


def _float(value: Any, where: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpecError(f"{where}: expected a number, got {type(value).__name__}")
    return float(value)


def _bool(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SpecError(f"{where}: expected a boolean, got {type(value).__name__}")
    return value


def _list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SpecError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _alert_from(data: Any, where: str) -> Alert:
    m = _mapping(data, where)
    return Alert(
        disable=_bool(m.get("disable"), f"{where}.disable"),
        labels=_string_map(m.get("labels"), f"{where}.labels"),
        annotations=_string_map(m.get("annotations"), f"{where}.annotations"),
    )


def _alerting_from(data: Any, where: str) -> Alerting:
    m = _mapping(data, where)
    return Alerting(
        name=_string(m.get("name"), f"{where}.name"),
        labels=_string_map(m.get("labels"), f"{where}.labels"),
        annotations=_string_map(m.get("annotations"), f"{where}.annotations"),
        page_alert=_alert_from(m.get("page_alert"), f"{where}.page_alert"),
        ticket_alert=_alert_from(m.get("ticket_alert"), f"{where}.ticket_alert"),
    )


def _sli_from(data: Any, where: str) -> SLI:
    m = _mapping(data, where)
    sli = SLI()
    if m.get("raw") is not None:
        raw = _mapping(m["raw"], f"{where}.raw")
        sli.raw = SLIRaw(
            error_ratio_query=_string(raw.get("error_ratio_query"), f"{where}.raw.error_ratio_query")
        )
    if m.get("events") is not None:
        events = _mapping(m["events"], f"{where}.events")
        sli.events = SLIEvents(
            error_query=_string(events.get("error_query"), f"{where}.events.error_query"),
            total_query=_string(events.get("total_query"), f"{where}.events.total_query"),
        )
    if m.get("plugin") is not None:
        plugin = _mapping(m["plugin"], f"{where}.plugin")
        sli.plugin = SLIPlugin(
            id=_string(plugin.get("id"), f"{where}.plugin.id"),
            options=_string_map(plugin.get("options"), f"{where}.plugin.options"),
        )
    return sli


def _slo_from(data: Any, where: str) -> SLO:
    m = _mapping(data, where)
    return SLO(
        name=_string(m.get("name"), f"{where}.name"),
        description=_string(m.get("description"), f"{where}.description"),
        objective=_float(m.get("objective"), f"{where}.objective"),
        labels=_string_map(m.get("labels"), f"{where}.labels"),
        sli=_sli_from(m.get("sli"), f"{where}.sli"),
        alerting=_alerting_from(m.get("alerting"), f"{where}.alerting"),
    )


def spec_from_dict(data: Any) -> Spec:
    """Build a Spec from decoded YAML/JSON data."""
    m = _mapping(data, "spec")
    return Spec(
        version=_string(m.get("version"), "version"),
        service=_string(m.get("service"), "service"),
        labels=_string_map(m.get("labels"), "labels"),
        slos=[_slo_from(item, f"slos[{n}]") for n, item in enumerate(_list(m.get("slos"), "slos"))],
    )


# Encoding helpers.


def _alert_to(alert: Alert) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if alert.disable:
        out["disable"] = True
    if alert.labels:
        out["labels"] = dict(alert.labels)
    if alert.annotations:
        out["annotations"] = dict(alert.annotations)
    return out


def _sli_to(sli: SLI) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if sli.raw is not None:
        out["raw"] = {"error_ratio_query": sli.raw.error_ratio_query}
    if sli.events is not None:
        out["events"] = {
            "error_query": sli.events.error_query,
            "total_query": sli.events.total_query,
        }
    if sli.plugin is not None:
        out["plugin"] = {"id": sli.plugin.id, "options": dict(sli.plugin.options)}
    return out


def _alerting_to(alerting: Alerting) -> dict[str, Any]:
    out: dict[str, Any] = {"name": alerting.name}
    if alerting.labels:
        out["labels"] = dict(alerting.labels)
    if alerting.annotations:
        out["annotations"] = dict(alerting.annotations)
    if not alerting.page_alert.is_empty():
        out["page_alert"] = _alert_to(alerting.page_alert)
    if not alerting.ticket_alert.is_empty():
        out["ticket_alert"] = _alert_to(alerting.ticket_alert)
    return out


def _slo_to(slo: SLO) -> dict[str, Any]:
    out: dict[str, Any] = {"name": slo.name}
    if slo.description:
        out["description"] = slo.description
    out["objective"] = slo.objective
    if slo.labels:
        out["labels"] = dict(slo.labels)
    out["sli"] = _sli_to(slo.sli)
    out["alerting"] = _alerting_to(slo.alerting)
    return out


def spec_to_dict(spec: Spec) -> dict[str, Any]:
    """Convert a Spec to plain data, leaving out empty optional fields."""
    out: dict[str, Any] = {"version": spec.version, "service": spec.service}
    if spec.labels:
        out["labels"] = dict(spec.labels)
    if spec.slos:
        out["slos"] = [_slo_to(slo) for slo in spec.slos]
    return out


def parse_spec(text: str | bytes) -> Spec:
    """Parse a YAML document into a Spec."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise SpecError(f"invalid YAML: {err}") from err
    return spec_from_dict(data)


def dump_spec(spec: Spec) -> str:
    """Serialize a Spec as a YAML document."""
    return yaml.safe_dump(
        spec_to_dict(spec),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
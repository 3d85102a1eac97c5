"""Interface of ``prometheus/v1`` SLI plugins.

Plugins receive and return plain string mappings and leave any type
conversion to themselves.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Protocol, runtime_checkable

VERSION = "prometheus/v1"

SLIPluginVersion = str
SLIPluginID = str

META_SERVICE = "service"
META_SLO = "slo"
META_OBJECTIVE = "objective"


@runtime_checkable
class SLIPlugin(Protocol):
    """A callable that builds an SLI error ratio query from its inputs.

    It returns the query and raises an exception when it cannot build one.
    """

    def __call__(
        self,
        meta: Mapping[str, str],
        labels: Mapping[str, str],
        options: Mapping[str, str],
    ) -> str: ...


def _format_objective(objective: float) -> str:
    if isinstance(objective, bool) or not isinstance(objective, (int, float)):
        raise TypeError(f"objective must be a number, got {type(objective).__name__}")
    text = format(Decimal(repr(float(objective))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def plugin_meta(service: str, slo: str, objective: float) -> dict[str, str]:
    """Build the metadata mapping handed to an SLI plugin."""
    return {
        META_SERVICE: service,
        META_SLO: slo,
        META_OBJECTIVE: _format_objective(objective),
    }
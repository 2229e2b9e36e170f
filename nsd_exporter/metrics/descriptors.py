"""Resolved metric identities.

A `MetricDescriptor` is the cacheable identity of one raw stats key: output
name, help text, value kind and (for pattern matches) the label names plus the
label values captured from that specific key. A `Sample` pairs a descriptor
with one numeric value for a single scrape.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    Metric,
    UnknownMetricFamily,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ValueKind",
    "parse_value_kind",
    "sanitize_key",
    "build_fqname",
    "exposition_name",
    "MetricDescriptor",
    "Sample",
    "new_family",
]


class ValueKind(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"


def parse_value_kind(raw: str | None) -> ValueKind:
    """Map a configured type string to a ValueKind (case-insensitive).

    Unknown or missing values are accepted as GAUGE with a warning so newer
    kinds in a config file never break loading.
    """
    try:
        return ValueKind((raw or "").strip().lower())
    except ValueError:
        logger.warning("Invalid type of metric %r. Assumed gauge", raw)
        return ValueKind.GAUGE


def sanitize_key(raw_key: str) -> str:
    return raw_key.replace(".", "_")


def build_fqname(namespace: str, name: str) -> str:
    if not namespace:
        return name
    if not name:
        return namespace
    return f"{namespace}_{name}"


def exposition_name(name: str, kind: ValueKind) -> str:
    """Sample name in the text format; counters always carry exactly one `_total`."""
    if kind is ValueKind.COUNTER:
        return name.removesuffix("_total") + "_total"
    return name


@dataclass(frozen=True)
class MetricDescriptor:
    raw_key: str
    name: str                       # Fully-qualified Prometheus name
    documentation: str
    kind: ValueKind
    label_names: tuple[str, ...] = ()
    label_values: tuple[str, ...] = ()
    source: str = "static"          # 'static' | 'pattern'

    @property
    def exposed_name(self) -> str:
        return exposition_name(self.name, self.kind)

    @property
    def schema(self) -> tuple[ValueKind, tuple[str, ...]]:
        """Kind plus label names; descriptors sharing a family must agree on it."""
        return self.kind, self.label_names


@dataclass(frozen=True)
class Sample:
    descriptor: MetricDescriptor
    value: float


_FAMILY_TYPES = {
    ValueKind.COUNTER: CounterMetricFamily,
    ValueKind.GAUGE: GaugeMetricFamily,
    ValueKind.UNTYPED: UnknownMetricFamily,
}


def new_family(name: str, documentation: str, kind: ValueKind, label_names: Sequence[str] = ()) -> Metric:
    """Construct an empty prometheus_client metric family for the given kind."""
    ctor = _FAMILY_TYPES[kind]
    return ctor(name, documentation, labels=list(label_names))

"""Resolution engine: raw stats key -> metric descriptor.

`resolve()` is a pure function of (raw key, configuration, namespace):

1. Exact match in the static `metrics` mapping -> label-free descriptor named
   after the sanitized raw key.
2. Otherwise the pattern definitions are tried in declaration order; the first
   one whose regex matches the whole key wins. Capture groups become label
   values, paired with the declared label names.
3. No match -> `Unresolved`.

Nothing here touches the descriptor cache; callers decide what to keep.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from .descriptors import MetricDescriptor, build_fqname, sanitize_key

if TYPE_CHECKING:  # pragma: no cover
    from ..config.metric_config import ConfigurationModel

__all__ = ["Unresolved", "Resolution", "resolve", "Resolver"]


@dataclass(frozen=True)
class Unresolved:
    raw_key: str


Resolution = Union[MetricDescriptor, Unresolved]


def resolve(raw_key: str, config: ConfigurationModel, namespace: str) -> Resolution:
    static = config.metrics.get(raw_key)
    if static is not None:
        return MetricDescriptor(
            raw_key=raw_key,
            name=build_fqname(namespace, sanitize_key(raw_key)),
            documentation=static.help,
            kind=static.kind,
        )

    for pdef in config.label_metrics:
        m = pdef.regex.fullmatch(raw_key)
        if m is None:
            continue
        # Optional groups that did not participate still need a label value.
        values = tuple(v if v is not None else "" for v in m.groups())
        return MetricDescriptor(
            raw_key=raw_key,
            name=build_fqname(namespace, pdef.name or sanitize_key(raw_key)),
            documentation=pdef.help,
            kind=pdef.kind,
            label_names=pdef.labels,
            label_values=values,
            source="pattern",
        )

    return Unresolved(raw_key)


class Resolver:
    """Binds a configuration model and namespace into a one-argument callable."""

    def __init__(self, config: ConfigurationModel, namespace: str) -> None:
        self.config = config
        self.namespace = namespace

    def __call__(self, raw_key: str) -> Resolution:
        return resolve(raw_key, self.config, self.namespace)

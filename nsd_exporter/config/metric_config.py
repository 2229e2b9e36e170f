"""Metric configuration model & loader.

A metric configuration document has two top-level sections:

  metrics:         exact raw key -> {help, type}
  label_metrics:   regex pattern -> {name (optional), help, type, labels}

Pattern definitions are kept as an ordered tuple in document order; the
resolution engine applies them first-match-wins, so the order is part of the
contract. Loading either yields a complete, immutable `ConfigurationModel` or
raises `ConfigError`; nothing partially built ever escapes.

Public API:
  parse_metric_config(data) -> ConfigurationModel
  load_metric_config(path, daemon_type='nsd') -> ConfigurationModel
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from importlib import resources
from types import MappingProxyType
from typing import Any

import yaml

from ..metrics.descriptors import ValueKind, parse_value_kind
from ..utils.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS_PACKAGE = "nsd_exporter.config.defaults"
DEFAULT_CONFIGS = {
    "nsd": "nsd.yaml",
    "unbound": "unbound.yaml",
}


@dataclass(frozen=True)
class StaticMetricDef:
    help: str
    kind: ValueKind = ValueKind.GAUGE


@dataclass(frozen=True)
class PatternMetricDef:
    pattern: str
    regex: re.Pattern[str]
    help: str
    kind: ValueKind = ValueKind.GAUGE
    name: str | None = None
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfigurationModel:
    metrics: Mapping[str, StaticMetricDef]
    label_metrics: tuple[PatternMetricDef, ...]

    def __len__(self) -> int:
        return len(self.metrics) + len(self.label_metrics)


def _section(doc: dict[str, Any], name: str) -> dict[Any, Any]:
    raw = doc.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"section {name!r} must be a mapping, got {type(raw).__name__}")
    return raw


def _entry(section: str, key: Any, raw: Any) -> dict[str, Any]:
    if not isinstance(key, str):
        raise ConfigError(f"{section}: key {key!r} must be a string")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{section}.{key}: entry must be a mapping, got {type(raw).__name__}")
    return raw


def _opt_str(section: str, key: str, entry: dict[str, Any], field: str) -> str | None:
    value = entry.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{section}.{key}: {field!r} must be a string")
    return value


def _build_static(key: str, entry: dict[str, Any]) -> StaticMetricDef:
    return StaticMetricDef(
        help=_opt_str("metrics", key, entry, "help") or "",
        kind=parse_value_kind(_opt_str("metrics", key, entry, "type")),
    )


def _build_pattern(pattern: str, entry: dict[str, Any]) -> PatternMetricDef:
    labels = entry.get("labels") or []
    if not isinstance(labels, list) or not all(isinstance(lbl, str) for lbl in labels):
        raise ConfigError(f"label_metrics.{pattern}: 'labels' must be a list of strings")
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"label_metrics: invalid regular expression {pattern!r}: {exc}") from exc
    if regex.groups != len(labels):
        raise ConfigError(
            f"label_metrics.{pattern}: {regex.groups} capturing group(s) but {len(labels)} label(s)"
        )
    return PatternMetricDef(
        pattern=pattern,
        regex=regex,
        help=_opt_str("label_metrics", pattern, entry, "help") or "",
        kind=parse_value_kind(_opt_str("label_metrics", pattern, entry, "type")),
        name=_opt_str("label_metrics", pattern, entry, "name") or None,
        labels=tuple(labels),
    )


def parse_metric_config(data: str | bytes) -> ConfigurationModel:
    """Build a ConfigurationModel from a YAML document."""
    try:
        doc = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ConfigError(f"malformed metric configuration: {exc}") from exc
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ConfigError(f"metric configuration must be a mapping, got {type(doc).__name__}")

    static: dict[str, StaticMetricDef] = {}
    for key, raw in _section(doc, "metrics").items():
        static[key] = _build_static(key, _entry("metrics", key, raw))

    patterns: list[PatternMetricDef] = []
    for pattern, raw in _section(doc, "label_metrics").items():
        patterns.append(_build_pattern(pattern, _entry("label_metrics", pattern, raw)))

    return ConfigurationModel(metrics=MappingProxyType(static), label_metrics=tuple(patterns))


def _read_default(daemon_type: str) -> bytes:
    filename = DEFAULT_CONFIGS.get(daemon_type.lower(), DEFAULT_CONFIGS["nsd"])
    return resources.files(DEFAULTS_PACKAGE).joinpath(filename).read_bytes()


def load_metric_config(path: str | None = None, daemon_type: str = "nsd") -> ConfigurationModel:
    """Load the metric configuration from `path`, or the built-in default when empty."""
    source = path or f"<built-in {daemon_type}>"
    try:
        if path:
            with open(path, "rb") as fh:
                data = fh.read()
        else:
            data = _read_default(daemon_type)
    except OSError as exc:
        raise ConfigError(f"cannot read metric configuration {source}: {exc}") from exc
    model = parse_metric_config(data)
    logger.info(
        "metric_config.loaded source=%s metrics=%d label_metrics=%d",
        source, len(model.metrics), len(model.label_metrics),
    )
    return model


__all__ = [
    "StaticMetricDef",
    "PatternMetricDef",
    "ConfigurationModel",
    "parse_metric_config",
    "load_metric_config",
]

"""Configuration: metric definitions, daemon control settings, runtime settings."""
from __future__ import annotations

from .metric_config import (
    ConfigurationModel,
    PatternMetricDef,
    StaticMetricDef,
    load_metric_config,
    parse_metric_config,
)

__all__ = [
    "ConfigurationModel",
    "PatternMetricDef",
    "StaticMetricDef",
    "load_metric_config",
    "parse_metric_config",
]

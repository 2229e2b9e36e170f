"""Metric identities, resolution and descriptor caching.

Kept import-light: `server` (HTTP) is not imported here.
"""
from __future__ import annotations

from .cache import DescriptorCache
from .descriptors import MetricDescriptor, Sample, ValueKind
from .resolution import Resolver, Unresolved, resolve

__all__ = [
    "DescriptorCache",
    "MetricDescriptor",
    "Resolver",
    "Sample",
    "Unresolved",
    "ValueKind",
    "resolve",
]

"""NSD / Unbound control-channel statistics exporter for Prometheus."""
from __future__ import annotations

from .version import __version__, get_version

__all__ = ["__version__", "get_version"]

from __future__ import annotations

from .control_client import ControlClient, ControlTransport
from .stats_collector import ScrapeReport, StatsCollector

__all__ = ["ControlClient", "ControlTransport", "ScrapeReport", "StatsCollector"]

"""Pytest configuration & shared fixtures.

Responsibilities:
1. Ensure project root on sys.path (tests run without an editable install).
2. Provide small metric configurations and a canned control-channel failure.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nsd_exporter.config.metric_config import parse_metric_config  # noqa: E402
from nsd_exporter.utils.exceptions import TransportError  # noqa: E402
from tests._helpers import BASIC_CONFIG  # noqa: E402


@pytest.fixture()
def basic_config():
    return parse_metric_config(BASIC_CONFIG)


@pytest.fixture()
def down():
    return TransportError("connection refused")

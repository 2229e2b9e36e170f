"""Environment flag helpers.

Interprets environment variables as boolean feature flags using the canonical
truthy set {"1","true","yes","on"} (case-insensitive).

Usage:
    from nsd_exporter.utils.env_flags import is_truthy_env
    if is_truthy_env('NSD_EXPORTER_JSON_LOGS'):
        ...
"""
from __future__ import annotations

import os

TRUTHY_SET: set[str] = {"1","true","yes","on"}

def is_truthy(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_SET

def is_truthy_env(name: str, default: str | None = None) -> bool:
    return is_truthy(os.getenv(name, default or ''))

__all__ = [
    'TRUTHY_SET',
    'is_truthy',
    'is_truthy_env',
]

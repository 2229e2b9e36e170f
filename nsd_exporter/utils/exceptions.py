"""Exporter exception hierarchy.

A small exception tree for categorizing failures by where they may surface:

  ConfigError         - load time, fatal to startup (or to a reload attempt).
  TransportError      - per scrape, recoverable; reported as up=0.
  MalformedLineError  - per response line, recoverable; the line is skipped.
  UnresolvedKeyError  - per response line, recoverable; retried every scrape.
"""
from __future__ import annotations


class ExporterError(Exception):
    """Base class for all exporter exceptions."""


class ConfigError(ExporterError):
    """Metric configuration could not be loaded (unreadable, malformed, bad regex)."""


class TransportError(ExporterError):
    """Control channel connection, command or read failure."""


class MalformedLineError(ExporterError):
    """A stats response line without separator, key, or numeric value."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class UnresolvedKeyError(ExporterError):
    """Raw key matches neither an exact nor a pattern metric definition."""

    def __init__(self, raw_key: str) -> None:
        super().__init__(f"metric {raw_key!r} not found in config")
        self.raw_key = raw_key


__all__ = [
    "ExporterError",
    "ConfigError",
    "TransportError",
    "MalformedLineError",
    "UnresolvedKeyError",
]

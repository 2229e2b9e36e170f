"""Contextual fields attached to every log record.

The fields live in a contextvar so a value bound inside one scrape thread
never leaks into another. `setup_logging` installs a filter that copies them
onto records; the JSON formatter nests them under `ctx`.

Known fields: run_id, component, scrape, daemon.

  from nsd_exporter.utils import log_context as lc
  lc.bind(run_id='abc123', component='main')
  with lc.scoped(scrape=5):
      logger.info('Collecting...')
"""
from __future__ import annotations

import contextvars
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any

CONTEXT_FIELDS = ("run_id", "component", "scrape", "daemon")

_EMPTY: Mapping[str, Any] = MappingProxyType({})
_fields: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar("nsd_exporter_log_fields", default=_EMPTY)


def _with(extra: Mapping[str, Any]) -> Mapping[str, Any]:
    unknown = set(extra) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"unknown log context field(s): {', '.join(sorted(unknown))}")
    merged = dict(_fields.get())
    merged.update((k, v) for k, v in extra.items() if v is not None)
    return MappingProxyType(merged)


def get_context() -> dict[str, Any]:
    return dict(_fields.get())


def bind(**fields: Any) -> None:
    """Add fields for the rest of the current context (None values are ignored)."""
    _fields.set(_with(fields))


@contextmanager
def scoped(**fields: Any) -> Iterator[None]:
    token = _fields.set(_with(fields))
    try:
        yield
    finally:
        _fields.reset(token)


__all__ = ["CONTEXT_FIELDS", "get_context", "bind", "scoped"]

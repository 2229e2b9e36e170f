"""Unified logging setup for the exporter."""
from __future__ import annotations

import json
import logging
import os
import sys
import time

from . import log_context as _lc
from .env_flags import is_truthy_env

DEFAULT_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'


class ContextFilter(logging.Filter):
    """Copy log context fields onto records so formatters can reference them."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        ctx = _lc.get_context()
        for k in _lc.CONTEXT_FIELDS:
            if k in ctx and not hasattr(record, k):
                setattr(record, k, ctx[k])
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context fields nested under 'ctx'."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            'ts': getattr(record, 'created', time.time()),
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'msg': record.getMessage(),
            'ctx': _lc.get_context() or None,
        }
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = 'INFO', log_file: str | None = None, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure root logging.

    Console handler writes to stdout using `fmt`, or one JSON object per line when
    NSD_EXPORTER_JSON_LOGS is truthy. The optional file handler always uses
    DEFAULT_FORMAT. Calling again replaces previously installed handlers.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.addFilter(ContextFilter())
    if is_truthy_env('NSD_EXPORTER_JSON_LOGS'):
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(logging.Formatter(fmt))
    root.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding='utf-8')
        fh.setLevel(log_level)
        fh.addFilter(ContextFilter())
        fh.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root.addHandler(fh)

    return root

__all__ = ["setup_logging", "ContextFilter", "JsonFormatter", "DEFAULT_FORMAT"]

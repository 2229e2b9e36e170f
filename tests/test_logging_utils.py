import contextvars
import json
import logging

import pytest

from nsd_exporter.utils import log_context as lc
from nsd_exporter.utils.logging_utils import ContextFilter, JsonFormatter


def _record(msg="hello"):
    return logging.LogRecord("nsd_exporter.test", logging.INFO, __file__, 1, msg, None, None)


def _isolated(fn):
    """Run fn in a fresh context so bound fields never leak between tests."""
    return contextvars.Context().run(fn)


def test_context_filter_copies_fields():
    def body():
        record = _record()
        with lc.scoped(scrape=7, daemon="nsd"):
            assert ContextFilter().filter(record) is True
        return record

    record = _isolated(body)
    assert record.scrape == 7
    assert record.daemon == "nsd"
    assert not hasattr(record, "run_id")


def test_scoped_restores_previous():
    def body():
        lc.bind(component="main", run_id=None)
        with lc.scoped(scrape=1):
            assert lc.get_context() == {"component": "main", "scrape": 1}
        return lc.get_context()

    assert _isolated(body) == {"component": "main"}


def test_unknown_field_rejected():
    with pytest.raises(ValueError, match="zone"):
        _isolated(lambda: lc.bind(zone="example.org"))


def test_json_formatter_includes_context():
    def body():
        with lc.scoped(scrape=3):
            return JsonFormatter().format(_record("scrape failed"))

    payload = json.loads(_isolated(body))
    assert payload["msg"] == "scrape failed"
    assert payload["level"] == "INFO"
    assert payload["ctx"] == {"scrape": 3}

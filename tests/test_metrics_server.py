import threading
import urllib.error
import urllib.request

import pytest
from prometheus_client import CollectorRegistry

from nsd_exporter.collectors.stats_collector import StatsCollector
from nsd_exporter.metrics.server import build_metrics_server

from tests._helpers import FakeTransport


@pytest.fixture()
def metrics_url(basic_config):
    registry = CollectorRegistry()
    registry.register(StatsCollector(FakeTransport("num.queries=42\nnum.type.A=10\n"), basic_config))
    server = build_metrics_server("127.0.0.1", 0, "/metrics", registry)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def _get(url):
    with urllib.request.urlopen(url, timeout=5) as resp:  # noqa: S310 - test-only local URL
        return resp.status, resp.headers.get("Content-Type"), resp.read().decode()


def test_metrics_endpoint(metrics_url):
    status, ctype, body = _get(metrics_url + "/metrics")
    assert status == 200
    assert ctype.startswith("text/plain")
    assert "nsd_up 1.0" in body
    assert "nsd_num_queries_total 42.0" in body
    assert 'nsd_query_type_total{type="A"} 10.0' in body


def test_landing_page_links_metrics(metrics_url):
    status, ctype, body = _get(metrics_url + "/")
    assert status == 200
    assert 'href="/metrics"' in body


def test_unknown_path_is_404(metrics_url):
    with pytest.raises(urllib.error.HTTPError) as ei:
        _get(metrics_url + "/nope")
    assert ei.value.code == 404


def test_concurrent_scrapes(metrics_url):
    bodies = []
    lock = threading.Lock()

    def scrape():
        _, _, body = _get(metrics_url + "/metrics")
        with lock:
            bodies.append(body)

    threads = [threading.Thread(target=scrape) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert len(bodies) == 5
    assert all("nsd_up 1.0" in b for b in bodies)

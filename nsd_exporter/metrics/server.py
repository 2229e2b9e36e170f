"""Prometheus exposition HTTP server.

Explicit ThreadingHTTPServer that answers the configured metric path by
calling prometheus_client.generate_latest on the given registry. Each request
runs on its own thread, so concurrent scrapes reach the collector concurrently.

Public API:
  build_metrics_server(host, port, metric_path, registry) -> ThreadingHTTPServer
  serve_metrics(...) -> None   (blocks until shutdown)
"""
from __future__ import annotations

import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>{title}</title></head>
<body>
<h1>{title}</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def _make_handler(metric_path: str, registry: CollectorRegistry, title: str) -> type[BaseHTTPRequestHandler]:
    landing = LANDING_PAGE.format(title=title, path=metric_path).encode("utf-8")

    class _MetricsHandler(BaseHTTPRequestHandler):
        server_version = "NSDExporter/0.3"
        sys_version = ""

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            logger.debug("%s - %s", self.address_string(), format % args)

        def _reply(self, status: int, body: bytes, content_type: str) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_GET(self) -> None:  # noqa: N802
            path = (self.path or "/").split("?", 1)[0]
            if path == metric_path:
                try:
                    body = generate_latest(registry)
                except Exception:
                    logger.exception("error while generating exposition")
                    self._reply(500, b"error collecting metrics\n", "text/plain; charset=utf-8")
                    return
                self._reply(200, body, CONTENT_TYPE_LATEST)
            elif path == "/":
                self._reply(200, landing, "text/html; charset=utf-8")
            else:
                self._reply(404, b"not found\n", "text/plain; charset=utf-8")

    return _MetricsHandler


def build_metrics_server(host: str, port: int, metric_path: str = "/metrics",
                         registry: CollectorRegistry = REGISTRY, *,
                         title: str = "NSD Exporter") -> ThreadingHTTPServer:
    if not metric_path.startswith("/"):
        metric_path = "/" + metric_path
    server = ThreadingHTTPServer((host, port), _make_handler(metric_path, registry, title))
    server.daemon_threads = True
    return server


def serve_metrics(host: str, port: int, metric_path: str = "/metrics",
                  registry: CollectorRegistry = REGISTRY, *, title: str = "NSD Exporter") -> None:
    server = build_metrics_server(host, port, metric_path, registry, title=title)
    logger.info("Metrics available at http://%s:%s%s", host or "0.0.0.0", server.server_address[1], metric_path)
    try:
        server.serve_forever()
    finally:
        server.server_close()


__all__ = ["build_metrics_server", "serve_metrics"]

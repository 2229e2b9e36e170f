#!/usr/bin/env python3
"""NSD / Unbound Prometheus exporter entrypoint.

Usage:
    python -m nsd_exporter.main --help
    nsd-exporter --type unbound --config-file /etc/unbound/unbound.conf

Exit codes: 0 normal shutdown, 1 configuration or startup failure,
2 command-line usage error.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import uuid
from collections.abc import Sequence

from prometheus_client import REGISTRY

from .collectors.control_client import ControlClient
from .collectors.stats_collector import StatsCollector
from .config.metric_config import load_metric_config
from .config.settings import ExporterSettings, parse_listen_address
from .metrics.server import serve_metrics
from .utils import log_context as lc
from .utils.exceptions import ConfigError, TransportError
from .utils.logging_utils import setup_logging
from .version import get_version

logger = logging.getLogger(__name__)


def build_parser(defaults: ExporterSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nsd-exporter',
        description='Export NSD / Unbound control channel statistics to Prometheus',
    )
    parser.add_argument('--listen-address', default=defaults.listen_address,
                        help='The address to listen on for HTTP requests (default: %(default)s)')
    parser.add_argument('--metric-path', default=defaults.metric_path,
                        help='The path to export Prometheus metrics to (default: %(default)s)')
    parser.add_argument('--metric-config', default=defaults.metric_config,
                        help='Mapping file for metrics. Defaults to the built in file for the daemon type. '
                             'This allows you to add or change any metrics that this scrapes')
    parser.add_argument('--config-file', default=defaults.config_file,
                        help='Configuration file for nsd/unbound to autodetect configuration from '
                             '(default: %(default)s). Mutually exclusive with --nsd-address, --cert, --key and --ca')
    parser.add_argument('--type', dest='daemon_type', choices=['nsd', 'unbound'], default=defaults.daemon_type,
                        help='What nsd-like daemon to scrape (default: %(default)s)')
    parser.add_argument('--cert', default=defaults.cert,
                        help='Client cert file location. Mutually exclusive with --config-file')
    parser.add_argument('--key', default=defaults.key,
                        help='Client key file location. Mutually exclusive with --config-file')
    parser.add_argument('--ca', default=defaults.ca,
                        help='Server CA file location. Mutually exclusive with --config-file')
    parser.add_argument('--nsd-address', dest='address', default=defaults.address,
                        help='NSD or Unbound control socket address')
    parser.add_argument('--timeout', type=float, default=defaults.timeout,
                        help='Control channel timeout in seconds (default: %(default)s)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        type=str.upper, default=defaults.log_level, help='Set the logging level')
    parser.add_argument('--log-file', default=defaults.log_file, help='Optional log file path')
    parser.add_argument('--version', action='version', version=f'nsd-exporter {get_version()}')
    return parser


def parse_settings(argv: Sequence[str] | None = None, env: dict[str, str] | None = None) -> ExporterSettings:
    """Environment first, then command-line overrides; exits(2) on usage errors."""
    settings = ExporterSettings.from_env(env)
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    for name in ExporterSettings.__slots__:
        if hasattr(args, name):
            setattr(settings, name, getattr(args, name))
    if settings.explicit_control and not settings.complete_control:
        parser.error('--cert, --key, --ca and --nsd-address must all be defined.')
    try:
        parse_listen_address(settings.listen_address)
    except ValueError as exc:
        parser.error(str(exc))
    return settings


def build_transport(settings: ExporterSettings) -> ControlClient:
    if settings.complete_control:
        return ControlClient(
            settings.daemon_type,
            settings.address,
            ca_file=settings.ca,
            key_file=settings.key,
            cert_file=settings.cert,
            timeout=settings.timeout,
        )
    return ControlClient.from_daemon_config(settings.config_file, settings.daemon_type, timeout=settings.timeout)


def install_reload_handler(collector: StatsCollector, settings: ExporterSettings) -> None:
    if not hasattr(signal, 'SIGHUP'):  # pragma: no cover - non-POSIX
        return

    def _reload(signum, frame) -> None:  # noqa: ARG001
        try:
            config = load_metric_config(settings.metric_config, settings.daemon_type)
        except ConfigError as exc:
            logger.error("metric configuration reload failed, keeping previous: %s", exc)
            return
        collector.reload(config)

    signal.signal(signal.SIGHUP, _reload)


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_settings(argv)
    setup_logging(settings.log_level, settings.log_file)
    lc.bind(run_id=uuid.uuid4().hex[:8], component='main', daemon=settings.daemon_type)

    try:
        config = load_metric_config(settings.metric_config, settings.daemon_type)
    except ConfigError as exc:
        logger.error("failed to load metric configuration: %s", exc)
        return 1

    try:
        transport = build_transport(settings)
        collector = StatsCollector(transport, config, namespace=settings.daemon_type)
    except (ConfigError, TransportError) as exc:
        logger.error("failed to initialize %s collector: %s", settings.daemon_type, exc)
        return 1

    REGISTRY.register(collector)
    install_reload_handler(collector, settings)
    host, port = parse_listen_address(settings.listen_address)
    logger.info("Started.")
    try:
        serve_metrics(host, port, settings.metric_path, REGISTRY)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as exc:
        logger.error("cannot serve metrics on %s: %s", settings.listen_address, exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

"""Exporter runtime settings.

Single-pass environment hydration object; command-line flags (see main.py)
override whatever the environment provides. PURE DATA CONTAINER.

Environment variables:
  NSD_EXPORTER_LISTEN_ADDRESS   address to serve HTTP on (':8080')
  NSD_EXPORTER_METRIC_PATH      exposition path ('/metrics')
  NSD_EXPORTER_METRIC_CONFIG    metric mapping file ('' -> built-in)
  NSD_EXPORTER_CONFIG_FILE      daemon config used for autodetection
  NSD_EXPORTER_TYPE             'nsd' or 'unbound'
  NSD_EXPORTER_ADDRESS / _CERT / _KEY / _CA   explicit control settings
  NSD_EXPORTER_TIMEOUT          control channel timeout in seconds
  NSD_EXPORTER_LOG_LEVEL / NSD_EXPORTER_LOG_FILE
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["ExporterSettings", "parse_listen_address"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExporterSettings:
    listen_address: str = ":8080"
    metric_path: str = "/metrics"
    metric_config: str = ""
    config_file: str = "/etc/nsd/nsd.conf"
    daemon_type: str = "nsd"
    address: str = ""
    cert: str = ""
    key: str = ""
    ca: str = ""
    timeout: float = 10.0
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ExporterSettings:
        e = env if env is not None else os.environ
        defaults = cls()
        def _str(name: str, default: str) -> str:
            return e.get(f"NSD_EXPORTER_{name}", default)
        def _float(name: str, default: float) -> float:
            raw = e.get(f"NSD_EXPORTER_{name}")
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning("ignoring invalid NSD_EXPORTER_%s=%r", name, raw)
                return default
        return cls(
            listen_address=_str("LISTEN_ADDRESS", defaults.listen_address),
            metric_path=_str("METRIC_PATH", defaults.metric_path),
            metric_config=_str("METRIC_CONFIG", defaults.metric_config),
            config_file=_str("CONFIG_FILE", defaults.config_file),
            daemon_type=_str("TYPE", defaults.daemon_type).lower(),
            address=_str("ADDRESS", defaults.address),
            cert=_str("CERT", defaults.cert),
            key=_str("KEY", defaults.key),
            ca=_str("CA", defaults.ca),
            timeout=_float("TIMEOUT", defaults.timeout),
            log_level=_str("LOG_LEVEL", defaults.log_level),
            log_file=e.get("NSD_EXPORTER_LOG_FILE") or None,
        )

    @property
    def explicit_control(self) -> bool:
        """True when any of address/cert/key/ca was supplied."""
        return any((self.address, self.cert, self.key, self.ca))

    @property
    def complete_control(self) -> bool:
        return all((self.address, self.cert, self.key, self.ca))


def parse_listen_address(listen: str) -> tuple[str, int]:
    """':8080' -> ('', 8080); 'host:9167' -> ('host', 9167); '[::1]:80' -> ('::1', 80)."""
    host, sep, port = listen.rpartition(":")
    if not sep:
        raise ValueError(f"listen address {listen!r} has no port")
    host = host.strip("[]")
    try:
        return host, int(port)
    except ValueError as exc:
        raise ValueError(f"invalid port in listen address {listen!r}") from exc

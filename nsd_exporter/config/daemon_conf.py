"""Read control-channel settings from an nsd.conf / unbound.conf file.

Only the `remote-control:` clause is interpreted:

  control-enable, control-interface, control-port, control-use-cert,
  server-cert-file, control-key-file, control-cert-file

plus top-level `include:` directives (glob patterns) so split configurations
resolve the same way the daemon sees them. Anything not found falls back to
the daemon's compiled-in defaults.
"""
from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass

from ..utils.exceptions import ConfigError

logger = logging.getLogger(__name__)

__all__ = ["DaemonControlConfig", "DAEMON_DEFAULTS", "read_daemon_config", "parse_daemon_config"]

MAX_INCLUDE_DEPTH = 8


@dataclass(frozen=True)
class DaemonControlConfig:
    daemon_type: str
    interface: str
    port: int
    server_cert_file: str
    control_key_file: str
    control_cert_file: str
    enabled: bool = True
    use_cert: bool = True

    @property
    def address(self) -> str:
        """Address string accepted by ControlClient (host:port or socket path)."""
        if self.interface.startswith("/"):
            return self.interface
        if ":" in self.interface:
            return f"[{self.interface}]:{self.port}"
        return f"{self.interface}:{self.port}"


DAEMON_DEFAULTS: dict[str, dict[str, str]] = {
    "nsd": {
        "control-enable": "no",
        "control-interface": "127.0.0.1",
        "control-port": "8952",
        "server-cert-file": "/etc/nsd/nsd_server.pem",
        "control-key-file": "/etc/nsd/nsd_control.key",
        "control-cert-file": "/etc/nsd/nsd_control.pem",
    },
    "unbound": {
        "control-enable": "no",
        "control-interface": "127.0.0.1",
        "control-port": "8953",
        "server-cert-file": "/etc/unbound/unbound_server.pem",
        "control-key-file": "/etc/unbound/unbound_control.key",
        "control-cert-file": "/etc/unbound/unbound_control.pem",
    },
}

_REMOTE_KEYS = {
    "control-enable",
    "control-interface",
    "control-port",
    "control-use-cert",
    "server-cert-file",
    "control-key-file",
    "control-cert-file",
}


def _strip_value(raw: str) -> str:
    value = raw.strip()
    if value[:1] in ("'", '"'):
        quote = value[0]
        end = value.find(quote, 1)
        return value[1:end] if end > 0 else value[1:]
    # unquoted values end at a comment
    return value.split("#", 1)[0].strip()


def _scan(path: str, found: dict[str, str], depth: int) -> None:
    if depth > MAX_INCLUDE_DEPTH:
        raise ConfigError(f"include nesting too deep at {path}")
    try:
        with open(path, encoding="utf-8") as fh:
            lines = fh.readlines()
    except OSError as exc:
        raise ConfigError(f"cannot read daemon configuration {path}: {exc}") from exc

    clause = None
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = _strip_value(rest)
        if key == "include":
            base = os.path.dirname(path)
            for inc in sorted(glob.glob(os.path.join(base, value))):
                _scan(inc, found, depth + 1)
            continue
        if not value:
            clause = key
            continue
        # first control-interface wins, like the control tools
        if clause == "remote-control" and key in _REMOTE_KEYS and key not in found:
            found[key] = value


def parse_daemon_config(values: dict[str, str], daemon_type: str) -> DaemonControlConfig:
    defaults = DAEMON_DEFAULTS.get(daemon_type, DAEMON_DEFAULTS["nsd"])
    merged = {**defaults, **values}
    try:
        port = int(merged["control-port"])
    except ValueError as exc:
        raise ConfigError(f"invalid control-port {merged['control-port']!r}") from exc
    return DaemonControlConfig(
        daemon_type=daemon_type,
        interface=merged["control-interface"],
        port=port,
        server_cert_file=merged["server-cert-file"],
        control_key_file=merged["control-key-file"],
        control_cert_file=merged["control-cert-file"],
        enabled=merged["control-enable"].lower() == "yes",
        use_cert=merged.get("control-use-cert", "yes").lower() == "yes",
    )


def read_daemon_config(path: str, daemon_type: str = "nsd") -> DaemonControlConfig:
    found: dict[str, str] = {}
    _scan(path, found, 0)
    conf = parse_daemon_config(found, daemon_type)
    if not conf.enabled:
        logger.warning("remote-control is not enabled in %s; the connection will likely be refused", path)
    return conf

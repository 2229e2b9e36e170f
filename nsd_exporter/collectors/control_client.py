"""Control-channel client for NSD and Unbound.

Speaks the same protocol as `nsd-control` / `unbound-control`: open a
connection, send `<VERSION> <command>\\n`, read until the daemon closes the
connection. TCP connections are wrapped in TLS with a client certificate;
an absolute-path address selects a Unix-domain socket without TLS.

Every command uses a fresh connection, so several scrapes may have commands
outstanding at the same time. All socket operations are bounded by `timeout`.
"""
from __future__ import annotations

import io
import logging
import socket
import ssl
from typing import Protocol, TextIO

from ..config.daemon_conf import DAEMON_DEFAULTS, read_daemon_config
from ..utils.exceptions import ConfigError, TransportError

logger = logging.getLogger(__name__)

__all__ = [
    "ControlTransport",
    "ControlClient",
    "PROTOCOL_VERSIONS",
    "parse_control_address",
]

PROTOCOL_VERSIONS = {
    "nsd": "NSDCT1",
    "unbound": "UBCT1",
}

DEFAULT_TIMEOUT = 10.0
RECV_SIZE = 65536


class ControlTransport(Protocol):
    def command(self, name: str) -> TextIO:
        """Run a control command and return its full response as text."""
        ...


def parse_control_address(address: str, default_port: int) -> tuple[str, int] | str:
    """Parse `host`, `host:port`, `host@port`, `[v6]:port` or a socket path."""
    address = address.strip()
    if not address:
        raise ValueError("empty control address")
    if address.startswith("/"):
        return address
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port_text = rest.lstrip(":@")
    elif "@" in address:
        host, _, port_text = address.partition("@")
    elif address.count(":") == 1:
        host, _, port_text = address.partition(":")
    else:
        # bare hostname / IPv4, or bare IPv6 literal
        host, port_text = address, ""
    if not port_text:
        return host, default_port
    try:
        return host, int(port_text)
    except ValueError as exc:
        raise ValueError(f"invalid port in control address {address!r}") from exc


class ControlClient:
    def __init__(
        self,
        daemon_type: str,
        address: str,
        *,
        ca_file: str | None = None,
        key_file: str | None = None,
        cert_file: str | None = None,
        use_tls: bool = True,
        skip_verify: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.daemon_type = daemon_type.lower()
        if self.daemon_type not in PROTOCOL_VERSIONS:
            raise ConfigError(f"unsupported daemon type {daemon_type!r}")
        default_port = int(DAEMON_DEFAULTS[self.daemon_type]["control-port"])
        try:
            self.address = parse_control_address(address, default_port)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        self.timeout = timeout
        self._ssl_context: ssl.SSLContext | None = None
        if use_tls and not isinstance(self.address, str):
            self._ssl_context = self._build_ssl_context(ca_file, key_file, cert_file, skip_verify)

    @classmethod
    def from_daemon_config(cls, path: str, daemon_type: str = "nsd", *, timeout: float = DEFAULT_TIMEOUT) -> ControlClient:
        conf = read_daemon_config(path, daemon_type)
        logger.info("control settings read from %s: address=%s tls=%s", path, conf.address, conf.use_cert)
        return cls(
            daemon_type,
            conf.address,
            ca_file=conf.server_cert_file,
            key_file=conf.control_key_file,
            cert_file=conf.control_cert_file,
            use_tls=conf.use_cert,
            timeout=timeout,
        )

    @staticmethod
    def _build_ssl_context(ca_file: str | None, key_file: str | None, cert_file: str | None,
                           skip_verify: bool) -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        try:
            if skip_verify:
                ctx.check_hostname = False
                ctx.verify_mode = ssl.CERT_NONE
            elif ca_file:
                ctx.load_verify_locations(cafile=ca_file)
            if cert_file:
                ctx.load_cert_chain(certfile=cert_file, keyfile=key_file or None)
        except (OSError, ssl.SSLError) as exc:
            raise ConfigError(f"cannot load control channel certificates: {exc}") from exc
        return ctx

    def _connect(self) -> socket.socket:
        if isinstance(self.address, str):
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            try:
                sock.connect(self.address)
            except OSError:
                sock.close()
                raise
            return sock
        sock = socket.create_connection(self.address, timeout=self.timeout)
        if self._ssl_context is None:
            return sock
        try:
            # daemon certificates are issued for the daemon name, not the host
            return self._ssl_context.wrap_socket(sock, server_hostname=self.daemon_type)
        except OSError:
            sock.close()
            raise

    def command(self, name: str) -> TextIO:
        request = f"{PROTOCOL_VERSIONS[self.daemon_type]} {name}\n".encode()
        chunks: list[bytes] = []
        try:
            with self._connect() as sock:
                sock.sendall(request)
                while True:
                    try:
                        chunk = sock.recv(RECV_SIZE)
                    except ssl.SSLEOFError:
                        # peer closed without a TLS close_notify
                        break
                    if not chunk:
                        break
                    chunks.append(chunk)
        except OSError as exc:
            raise TransportError(f"{self.daemon_type} control command {name!r} failed: {exc}") from exc
        text = b"".join(chunks).decode("utf-8", errors="replace")
        if text.startswith("error"):
            raise TransportError(f"{self.daemon_type} control command {name!r}: {text.splitlines()[0]}")
        return io.StringIO(text)

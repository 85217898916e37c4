"""SMTP transport resolution - maps port and policy to a dial plan."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from mailpipe.utils.errors import InvalidConfigError

from .constants import SMTPPorts


class ConnectionType(str, Enum):
    """SMTP connection policy."""

    AUTO = "auto"
    SSL = "ssl"
    STARTTLS = "starttls"
    PLAIN = "plain"


class TransportMode(str, Enum):
    """How the socket is secured."""

    IMPLICIT_TLS = "implicit_tls"
    UPGRADE_TLS = "upgrade_tls"
    PLAIN = "plain"


@dataclass(frozen=True)
class TransportPlan:
    """Resolved dial plan for one SMTP session.

    ``upgrade_required`` only matters for UPGRADE_TLS: when True a failed
    STARTTLS aborts the send, otherwise the plain connection is kept.
    """

    mode: TransportMode
    upgrade_required: bool = False

    @property
    def use_tls(self) -> bool:
        return self.mode is TransportMode.IMPLICIT_TLS

    @property
    def attempt_upgrade(self) -> bool:
        return self.mode is TransportMode.UPGRADE_TLS


def resolve_transport(port: int, policy: ConnectionType) -> TransportPlan:
    """Choose the transport for ``port`` under ``policy``."""
    policy = ConnectionType(policy)

    if policy is ConnectionType.SSL:
        return TransportPlan(TransportMode.IMPLICIT_TLS)

    if policy is ConnectionType.STARTTLS:
        return TransportPlan(TransportMode.UPGRADE_TLS, upgrade_required=True)

    if policy is ConnectionType.PLAIN:
        return TransportPlan(TransportMode.PLAIN)

    if SMTPPorts.is_implicit_ssl(port):
        return TransportPlan(TransportMode.IMPLICIT_TLS)

    if SMTPPorts.offers_starttls(port):
        return TransportPlan(TransportMode.UPGRADE_TLS, upgrade_required=False)

    return TransportPlan(TransportMode.PLAIN)


def parse_server_address(
    address: str, default_port: int = SMTPPorts.SMTP
) -> Tuple[str, int]:
    """Split ``host[:port]`` into host and port.

    Args:
        address: Server address, e.g. "smtp.example.com:465" or "[::1]:25"
        default_port: Port used when the address carries none

    Returns:
        Tuple of (host, port)

    Raises:
        InvalidConfigError: If the address or port is malformed
    """
    address = (address or "").strip()
    if not address:
        raise InvalidConfigError("Server address is empty")

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not host:
            raise InvalidConfigError(
                "Invalid server address format", details={"address": address}
            )
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise InvalidConfigError(
                "Invalid server address format", details={"address": address}
            )
        port_str = rest[1:]

    elif ":" in address:
        host, _, port_str = address.rpartition(":")
        if not host or ":" in host:
            raise InvalidConfigError(
                "Invalid server address format", details={"address": address}
            )

    else:
        return address, default_port

    try:
        port = int(port_str)
    except ValueError as e:
        raise InvalidConfigError(
            "Invalid port number", details={"address": address}
        ) from e

    if not 0 < port < 65536:
        raise InvalidConfigError("Invalid port number", details={"address": address})

    return host, port

"""Network-facing transport for the honeypot."""

from clawtrap.gateway.server import GatewayServer, client_identity, parse_frame

__all__ = ["GatewayServer", "client_identity", "parse_frame"]

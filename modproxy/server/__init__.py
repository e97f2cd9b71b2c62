"""HTTP surface of the proxy."""

from modproxy.server.app import create_app
from modproxy.server.routing import Endpoint, ProtocolRequest, parse_request_path

__all__ = ["Endpoint", "ProtocolRequest", "create_app", "parse_request_path"]

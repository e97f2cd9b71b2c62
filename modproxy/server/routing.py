"""
Mapping of request paths to protocol endpoints.

    MODULE/@v/list
    MODULE/@v/VERSION.info
    MODULE/@v/VERSION.mod
    MODULE/@v/VERSION.zip
    MODULE/@latest

MODULE and VERSION arrive case-escaped and are decoded here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from modproxy.codec import escape_path, unescape_path, unescape_version
from modproxy.exceptions import ValidationError
from modproxy.model import Artifact, CacheKey

LIST_SUFFIX = "/@v/list"
LATEST_SUFFIX = "/@latest"
VERSION_SEP = "/@v/"


class Endpoint(Enum):
    LIST = "list"
    LATEST = "latest"
    INFO = "info"
    MOD = "mod"
    ZIP = "zip"

    @property
    def artifact(self) -> Optional[Artifact]:
        if self in (Endpoint.INFO, Endpoint.MOD, Endpoint.ZIP):
            return Artifact.from_suffix(self.value)
        return None


@dataclass(frozen=True)
class ProtocolRequest:
    endpoint: Endpoint
    module: str
    version: Optional[str] = None

    @property
    def key(self) -> CacheKey:
        if self.version is None:
            raise ValueError(f"{self.endpoint.value} request has no version")
        return CacheKey(self.module, self.version)


def under_namespace(module: str, namespace: str) -> bool:
    """True if module is namespace itself or lies below it (whole elements only)."""
    return module == namespace or module.startswith(namespace + "/")


def path_in_namespace(path: str, namespace: str) -> bool:
    """Check a raw, still escaped, request path against the namespace."""
    return under_namespace(path.lstrip("/"), escape_path(namespace))


def parse_request_path(path: str) -> ProtocolRequest:
    """
    Parse a request path into a protocol request.

    Raises:
        ValidationError: If the path matches no endpoint or its module or
            version fails to decode
    """
    path = path.lstrip("/")

    if path.endswith(LIST_SUFFIX):
        module = path[: -len(LIST_SUFFIX)]
        return ProtocolRequest(Endpoint.LIST, unescape_path(module))

    if path.endswith(LATEST_SUFFIX):
        module = path[: -len(LATEST_SUFFIX)]
        return ProtocolRequest(Endpoint.LATEST, unescape_path(module))

    rest, dot, ext = path.rpartition(".")
    if dot and ext in ("info", "mod", "zip"):
        module, sep, version = rest.partition(VERSION_SEP)
        if sep and module and version:
            return ProtocolRequest(
                Endpoint(ext), unescape_path(module), unescape_version(version)
            )

    raise ValidationError("bad request")

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath

from modproxy.codec import escape_path, escape_version


class Artifact(Enum):
    """The three files of a cache entry, with their content types."""

    INFO = ("info", "application/json")
    MOD = ("mod", "text/plain; charset=UTF-8")
    ZIP = ("zip", "application/zip")

    def __init__(self, suffix: str, content_type: str):
        self.suffix = suffix
        self.content_type = content_type

    @classmethod
    def from_suffix(cls, suffix: str) -> "Artifact":
        for artifact in cls:
            if artifact.suffix == suffix:
                return artifact
        raise ValueError(f"unknown artifact suffix: {suffix}")

    def filename(self, escaped_version: str) -> str:
        if self is Artifact.INFO:
            return f"{escaped_version}.info"
        if self is Artifact.MOD:
            return "go.mod"
        return "source.zip"


@dataclass(frozen=True)
class CacheKey:
    """A decoded (module, version) pair."""

    module: str
    version: str

    @property
    def relpath(self) -> PurePosixPath:
        """Entry directory relative to the cache root: <module>/@v/<version>"""
        return PurePosixPath(escape_path(self.module), "@v", escape_version(self.version))

    @property
    def archive_prefix(self) -> str:
        return f"{self.module}@{self.version}/"

    def __str__(self) -> str:
        return f"{self.module}@{self.version}"


_MAJOR_SUFFIX = re.compile(r"^v([0-9]+)$")


def repo_name(module: str) -> str:
    """
    Name of the destination repository holding a module.

    The last path element is the repository name, except that a Go major
    version suffix (example.com/pkg/v2) lives in the same repository as v0/v1.
    """
    elements = module.split("/")
    last = elements[-1]
    match = _MAJOR_SUFFIX.match(last)
    if match and int(match.group(1)) >= 2 and len(elements) > 2:
        return elements[-2]
    return last

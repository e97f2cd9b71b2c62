"""Protocol interface and result types for version-control access."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol


class RefKind(str, Enum):
    TAG = "tag"
    BRANCH = "branch"
    OTHER = "other"


@dataclass(frozen=True)
class RemoteRef:
    """A ref advertised by a remote repository."""

    name: str  # full ref name, e.g. refs/tags/v1.0.0
    kind: RefKind
    commit: str  # hex object id the ref points at

    @property
    def short_name(self) -> str:
        """Final path segment of the ref name."""
        return self.name.rsplit("/", 1)[-1]

    @classmethod
    def from_name(cls, name: str, commit: str) -> "RemoteRef":
        if name.startswith("refs/tags/"):
            kind = RefKind.TAG
        elif name.startswith("refs/heads/"):
            kind = RefKind.BRANCH
        else:
            kind = RefKind.OTHER
        return cls(name=name, kind=kind, commit=commit)


@dataclass(frozen=True)
class Snapshot:
    """A ref checked out into a scratch workspace."""

    ref: RemoteRef
    commit: str  # resolved commit id, tags peeled
    workspace: Path


class VersionControl(Protocol):
    """Operations the proxy needs from a version-control client."""

    def list_refs(self, url: str) -> List[RemoteRef]:
        """List the refs advertised by the repository at url."""
        ...

    def checkout_ref(self, url: str, ref: str, workspace: Path) -> Snapshot:
        """Fetch exactly the tag or branch named ref into workspace."""
        ...

    def resolve_commit_time(self, snapshot: Snapshot) -> datetime:
        """Committer timestamp of the snapshot, with its timezone offset."""
        ...

    def read_file(self, snapshot: Snapshot, path: str) -> Optional[bytes]:
        """Content of a file at the snapshot, or None if it does not exist."""
        ...

    def create_archive(self, snapshot: Snapshot, dest: Path, prefix: str) -> int:
        """Write a zip of the snapshot tree to dest; returns the number of files."""
        ...

"""
Version-control access for the proxy.

The Tag Lister and the Fetcher only talk to the VersionControl protocol;
DulwichGit is the implementation used when serving.
"""

from modproxy.vcs.interfaces import RefKind, RemoteRef, Snapshot, VersionControl
from modproxy.vcs.dulwich_git import DulwichGit

__all__ = ["DulwichGit", "RefKind", "RemoteRef", "Snapshot", "VersionControl"]

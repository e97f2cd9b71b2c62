"""
Git access through dulwich.

Nothing here shells out to a git binary. Refs are read from the remote's
advertisement, and a checkout fetches the objects of a single ref into a
bare scratch repository. The descriptor and the archive are then read
straight from the object store, so version-control metadata never ends up
in an archive.
"""

import logging
import posixpath
import re
import stat
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from dulwich.client import get_transport_and_path
from dulwich.object_store import iter_tree_contents, tree_lookup_path
from dulwich.objects import S_ISGITLINK, Commit, Tag
from dulwich.repo import Repo

from modproxy.exceptions import (
    InternalError,
    ProxyError,
    RefNotFoundError,
    UpstreamFailure,
)
from modproxy.vcs.interfaces import RefKind, RemoteRef, Snapshot

logger = logging.getLogger(__name__)

PEELED_SUFFIX = "^{}"

HTTP_SCHEMES = ("http://", "https://")

# zip timestamps cannot predate 1980
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_CREDENTIALS = re.compile(r"(https?://)[^/@\s]+@")


def redact(text: str) -> str:
    """Strip user:token@ from any URL in text."""
    return _CREDENTIALS.sub(r"\1", text)


def select_ref(refs: List[RemoteRef], name: str) -> Optional[RemoteRef]:
    """
    Pick the ref a version string refers to.

    Tags win over branches. A tag stored under a path (refs/tags/sub/v1.0.0)
    matches by its final segment, the same way tags are listed.
    """
    tags = [r for r in refs if r.kind == RefKind.TAG]
    for ref in tags:
        if ref.name == f"refs/tags/{name}":
            return ref
    for ref in sorted(tags, key=lambda r: r.name):
        if ref.short_name == name:
            return ref
    for ref in refs:
        if ref.kind == RefKind.BRANCH and ref.name == f"refs/heads/{name}":
            return ref
    return None


class DulwichGit:
    """VersionControl implementation backed by dulwich."""

    def __init__(
        self,
        depth: Optional[int] = 1,
        list_timeout: Optional[float] = None,
        fetch_timeout: Optional[float] = None,
    ):
        """
        Args:
            depth: History depth to fetch; 0 or None fetches full history
            list_timeout: Socket timeout in seconds for ref advertisements
            fetch_timeout: Socket timeout in seconds for fetches
        """
        self.depth = depth or None
        self.list_timeout = list_timeout
        self.fetch_timeout = fetch_timeout

    def _client(self, url: str, timeout: Optional[float]):
        """Transport client for url; network transports get a socket timeout."""
        if timeout and url.startswith(HTTP_SCHEMES):
            return get_transport_and_path(url, timeout=timeout)
        return get_transport_and_path(url)

    def _remote_refs(self, url: str) -> Dict[bytes, bytes]:
        client, path = self._client(url, self.list_timeout)
        result = client.get_refs(path)
        # recent dulwich wraps the mapping in an LsRemoteResult
        return getattr(result, "refs", result)

    def list_refs(self, url: str) -> List[RemoteRef]:
        try:
            advertised = self._remote_refs(url)
        except Exception as e:
            raise UpstreamFailure(
                f"Failed to list refs of {redact(url)}: {redact(str(e))}"
            ) from e

        targets = {}
        peeled = {}
        for raw_name, sha in advertised.items():
            if sha is None:
                continue
            name = raw_name.decode("utf-8")
            if name.endswith(PEELED_SUFFIX):
                peeled[name[: -len(PEELED_SUFFIX)]] = sha.decode("ascii")
            else:
                targets[name] = sha.decode("ascii")

        return [
            RemoteRef.from_name(name, peeled.get(name, sha))
            for name, sha in targets.items()
        ]

    def checkout_ref(self, url: str, ref: str, workspace: Path) -> Snapshot:
        target = select_ref(self.list_refs(url), ref)
        if target is None:
            raise RefNotFoundError(redact(url), ref)

        wanted_name = target.name.encode("utf-8")

        def determine_wants(remote_refs, depth=None):
            sha = remote_refs.get(wanted_name)
            if sha is None:
                raise RefNotFoundError(redact(url), ref)
            return [sha]

        logger.info(f"Fetching {target.name} from {redact(url)}")
        try:
            repo = Repo.init_bare(str(workspace))
            with repo:
                client, path = self._client(url, self.fetch_timeout)
                kwargs = {"depth": self.depth} if self.depth else {}
                result = client.fetch(
                    path, repo, determine_wants=determine_wants, **kwargs
                )
                refs = getattr(result, "refs", result)
                sha = refs[wanted_name]
                obj = repo.object_store[sha]
                while isinstance(obj, Tag):
                    obj = repo.object_store[obj.object[1]]
        except ProxyError:
            raise
        except Exception as e:
            raise UpstreamFailure(
                f"Failed to fetch {ref} from {redact(url)}: {redact(str(e))}"
            ) from e

        if not isinstance(obj, Commit):
            raise UpstreamFailure(f"{target.name} in {redact(url)} is not a commit")

        commit = obj.id.decode("ascii")
        logger.debug(f"Resolved {target.name} to {commit}")
        return Snapshot(ref=target, commit=commit, workspace=workspace)

    def _commit(self, repo: Repo, snapshot: Snapshot) -> Commit:
        return repo[snapshot.commit.encode("ascii")]

    def resolve_commit_time(self, snapshot: Snapshot) -> datetime:
        with Repo(str(snapshot.workspace)) as repo:
            commit = self._commit(repo, snapshot)
            tz = timezone(timedelta(seconds=commit.commit_timezone))
            return datetime.fromtimestamp(commit.commit_time, tz)

    def read_file(self, snapshot: Snapshot, path: str) -> Optional[bytes]:
        with Repo(str(snapshot.workspace)) as repo:
            commit = self._commit(repo, snapshot)
            try:
                mode, sha = tree_lookup_path(
                    repo.object_store.__getitem__, commit.tree, path.encode("utf-8")
                )
            except KeyError:
                return None
            if not stat.S_ISREG(mode):
                return None
            return repo.object_store[sha].data

    def create_archive(self, snapshot: Snapshot, dest: Path, prefix: str) -> int:
        """
        Write the snapshot tree as a module zip.

        Symlinks and submodules are left out, as are subdirectories holding
        their own go.mod (those are separate modules). Every entry carries
        the commit time so two archives of the same commit are identical.
        """
        try:
            with Repo(str(snapshot.workspace)) as repo:
                commit = self._commit(repo, snapshot)
                committed = datetime.fromtimestamp(commit.commit_time, timezone.utc)
                date_time = max(committed.timetuple()[:6], _ZIP_EPOCH)

                entries = [
                    e
                    for e in iter_tree_contents(repo.object_store, commit.tree)
                    if not S_ISGITLINK(e.mode) and not stat.S_ISLNK(e.mode)
                ]
                paths = {e.path.decode("utf-8"): e for e in entries}
                nested = {
                    posixpath.dirname(p)
                    for p in paths
                    if posixpath.basename(p) == "go.mod" and "/" in p
                }

                count = 0
                with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                    for path in sorted(paths):
                        if any(path.startswith(d + "/") for d in nested):
                            continue
                        entry = paths[path]
                        info = zipfile.ZipInfo(prefix + path, date_time=date_time)
                        info.compress_type = zipfile.ZIP_DEFLATED
                        perms = 0o755 if entry.mode & 0o111 else 0o644
                        info.external_attr = (stat.S_IFREG | perms) << 16
                        archive.writestr(info, repo.object_store[entry.sha].data)
                        count += 1
                return count
        except (OSError, KeyError, UnicodeDecodeError, zipfile.BadZipFile) as e:
            raise InternalError(f"Failed to create archive {dest}: {e}") from e

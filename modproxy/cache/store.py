"""
On-disk cache of module versions.

Layout, one directory per (module, version), names in escaped form::

    <root>/
    └── github.com/
        └── !azure/
            └── sdk/
                └── @v/
                    ├── .v1.2.0.lock      # cross-process fetch lock
                    └── v1.2.0/
                        ├── v1.2.0.info
                        ├── go.mod
                        ├── source.zip
                        └── origin.json   # ref kind and commit it was built from

An entry directory only ever appears by renaming a fully written staging
directory into place, so a reader either sees all artifacts of one fetch or
no entry at all. Nothing in this module deletes entries; eviction can be
done from outside by removing version directories (their mtimes show when
they were fetched).
"""

import logging
import os
import shutil
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from pydantic import ValidationError as ModelValidationError

from modproxy.codec import escape_version
from modproxy.exceptions import InternalError
from modproxy.model import Artifact, CacheKey, RefOrigin

logger = logging.getLogger(__name__)

ORIGIN_FILE = "origin.json"


class CacheStore:
    """Filesystem store addressed by CacheKey."""

    def __init__(self, root: Path, mutable_ttl: float = 300.0):
        """
        Args:
            root: Cache root directory
            mutable_ttl: Seconds a branch-backed entry stays fresh; negative
                means entries never go stale
        """
        self.root = Path(root)
        self.mutable_ttl = mutable_ttl

    def entry_dir(self, key: CacheKey) -> Path:
        return self.root / key.relpath

    def artifact_path(self, key: CacheKey, artifact: Artifact) -> Path:
        return self.entry_dir(key) / artifact.filename(escape_version(key.version))

    def lock_path(self, key: CacheKey) -> Path:
        entry = self.entry_dir(key)
        return entry.parent / f".{entry.name}.lock"

    def origin(self, key: CacheKey) -> Optional[RefOrigin]:
        """The ref an entry was built from, or None if unknown."""
        try:
            return RefOrigin.model_validate_json(
                (self.entry_dir(key) / ORIGIN_FILE).read_bytes()
            )
        except (OSError, ModelValidationError):
            return None

    def is_complete(self, key: CacheKey) -> bool:
        return all(self.artifact_path(key, a).is_file() for a in Artifact)

    def is_fresh(self, key: CacheKey, now: Optional[float] = None) -> bool:
        """
        Check whether an entry can be served without fetching.

        Complete entries built from a tag (or of unknown origin) never go
        stale. Entries built from a branch go stale mutable_ttl seconds after
        they were written.
        """
        if not self.is_complete(key):
            return False
        if self.mutable_ttl < 0:
            return True

        origin = self.origin(key)
        if origin is None or not origin.mutable:
            return True

        try:
            written = self.artifact_path(key, Artifact.INFO).stat().st_mtime
        except FileNotFoundError:
            return False
        if now is None:
            now = time.time()
        return now - written < self.mutable_ttl

    def open_artifact(
        self, key: CacheKey, artifact: Artifact, check_fresh: bool = True
    ) -> Optional[BinaryIO]:
        """
        Open a cached artifact for reading.

        Returns:
            An open binary file, or None on a miss (absent, incomplete, or
            stale when check_fresh is set)
        """
        if check_fresh and not self.is_fresh(key):
            return None
        try:
            return open(self.artifact_path(key, artifact), "rb")
        except FileNotFoundError:
            return None

    @contextmanager
    def staging(self, key: CacheKey) -> Iterator[Path]:
        """
        Provide an empty directory next to the entry to write artifacts into.

        Whatever is left of it on exit (i.e. it was not installed) is removed.
        """
        entry = self.entry_dir(key)
        try:
            entry.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f".tmp-{entry.name}-", dir=entry.parent)
            )
        except OSError as e:
            raise InternalError(f"Could not create cache directory {entry.parent}: {e}") from e

        try:
            yield staging
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def install(self, key: CacheKey, staging: Path) -> Path:
        """
        Move a fully written staging directory into place as the entry.

        An existing entry is renamed aside first and removed afterwards. The
        caller must hold the key's fetch lock.
        """
        entry = self.entry_dir(key)
        displaced = None
        try:
            if entry.exists():
                displaced = entry.with_name(f".old-{entry.name}-{uuid.uuid4().hex}")
                os.rename(entry, displaced)
            os.rename(staging, entry)
        except OSError as e:
            if displaced is not None and not entry.exists():
                os.rename(displaced, entry)
            raise InternalError(f"Could not install cache entry {entry}: {e}") from e

        if displaced is not None:
            logger.debug(f"Replaced cache entry {entry}")
            shutil.rmtree(displaced, ignore_errors=True)
        return entry

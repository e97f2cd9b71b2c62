import logging
import tempfile
from pathlib import Path

from filelock import FileLock

from modproxy.cache.singleflight import SingleFlight, wait_for
from modproxy.cache.store import ORIGIN_FILE, CacheStore
from modproxy.codec import escape_version
from modproxy.config import ProxyConfig
from modproxy.exceptions import InternalError, ProxyError
from modproxy.model import Artifact, CacheKey, ModuleInfo, RefOrigin, repo_name
from modproxy.vcs import VersionControl

logger = logging.getLogger(__name__)

DESCRIPTOR = "go.mod"


class Fetcher:
    """
    Fills cache entries from the destination host.

    Concurrent misses for one key share a single attempt (through
    SingleFlight in this process, and a file lock across processes sharing
    the cache directory). A caller that times out leaves the attempt
    running in the background.
    """

    def __init__(
        self,
        config: ProxyConfig,
        vcs: VersionControl,
        store: CacheStore,
        flights: SingleFlight,
    ):
        self.config = config
        self.vcs = vcs
        self.store = store
        self.flights = flights

    def ensure(self, key: CacheKey) -> None:
        """
        Make sure key is cached, waiting at most fetch_timeout.

        Raises:
            FetchTimeout: If the attempt did not finish in time
            ProxyError: Whatever the shared attempt failed with
        """
        future = self.flights.submit(key, lambda: self.fetch(key))
        wait_for(future, self.config.fetch_timeout, f"fetch of {key}")

    def fetch(self, key: CacheKey) -> None:
        """Populate key unless a fresh entry appeared while waiting for the lock."""
        lock_path = self.store.lock_path(key)
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InternalError(f"Could not create cache directory {lock_path.parent}: {e}") from e

        with FileLock(str(lock_path)):
            if self.store.is_fresh(key):
                logger.debug(f"{key} was cached while waiting for the lock")
                return

            try:
                self._populate(key)
            except ProxyError as e:
                logger.error(f"Fetch of {key} failed: {e}")
                raise
            except Exception as e:
                logger.error(f"Fetch of {key} failed: {e}")
                raise InternalError(f"Failed to fetch {key}: {e}") from e

    def _populate(self, key: CacheKey) -> None:
        repo = repo_name(key.module)
        url = self.config.repo_url(repo)
        logger.info(f"Fetching {key} from {self.config.public_repo_url(repo)}")

        with tempfile.TemporaryDirectory(prefix="modproxy-") as scratch:
            with self.store.staging(key) as staging:
                snapshot = self.vcs.checkout_ref(url, key.version, Path(scratch))

                info = ModuleInfo(
                    Version=key.version, Time=self.vcs.resolve_commit_time(snapshot)
                )
                descriptor = self.vcs.read_file(snapshot, DESCRIPTOR)
                if descriptor is None:
                    logger.info(f"{key} has no {DESCRIPTOR}, synthesizing one")
                    descriptor = f"module {key.module}\n".encode("utf-8")

                escaped = escape_version(key.version)
                count = self.vcs.create_archive(
                    snapshot, staging / Artifact.ZIP.filename(escaped), key.archive_prefix
                )
                origin = RefOrigin(
                    kind=snapshot.ref.kind.value,
                    ref=snapshot.ref.name,
                    commit=snapshot.commit,
                )

                try:
                    (staging / Artifact.INFO.filename(escaped)).write_text(
                        info.model_dump_json(), encoding="utf-8"
                    )
                    (staging / Artifact.MOD.filename(escaped)).write_bytes(descriptor)
                    (staging / ORIGIN_FILE).write_text(
                        origin.model_dump_json(), encoding="utf-8"
                    )
                except OSError as e:
                    raise InternalError(f"Could not write cache entry for {key}: {e}") from e

                self.store.install(key, staging)

        logger.info(
            f"Cached {key} at {snapshot.commit[:7]} ({snapshot.ref.name}, {count} files)"
        )

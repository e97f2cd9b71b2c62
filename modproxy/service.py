import logging
from typing import BinaryIO, Optional

from modproxy.cache import CacheStore, Fetcher, SingleFlight
from modproxy.config import ProxyConfig
from modproxy.exceptions import InternalError
from modproxy.listing import TagLister
from modproxy.model import Artifact, CacheKey
from modproxy.vcs import DulwichGit, VersionControl

logger = logging.getLogger(__name__)


class ModuleProxy:
    """
    Wires the proxy components together from one ProxyConfig.

    Args:
        config: Resolved configuration
        vcs: Version-control implementation (defaults to DulwichGit)
    """

    def __init__(self, config: ProxyConfig, vcs: Optional[VersionControl] = None):
        self.config = config
        if vcs is None:
            vcs = DulwichGit(
                depth=config.clone_depth,
                list_timeout=config.list_timeout,
                fetch_timeout=config.fetch_timeout,
            )
        self.vcs = vcs
        self.store = CacheStore(config.cache_dir, mutable_ttl=config.mutable_ttl)
        self.fetches = SingleFlight(config.max_fetches, name="fetch")
        self.listings = SingleFlight(config.max_fetches, name="list")
        self.fetcher = Fetcher(config, self.vcs, self.store, self.fetches)
        self.tags = TagLister(config, self.vcs, self.listings)

    def open_artifact(self, key: CacheKey, artifact: Artifact) -> BinaryIO:
        """
        Open an artifact, fetching the entry first on a miss.

        The cache is probed once, and once more after a fetch.
        """
        handle = self.store.open_artifact(key, artifact)
        if handle is not None:
            logger.debug(f"Cache hit for {key} {artifact.suffix}")
            return handle

        self.fetcher.ensure(key)

        handle = self.store.open_artifact(key, artifact, check_fresh=False)
        if handle is None:
            raise InternalError(f"{artifact.suffix} of {key} missing after fetch")
        return handle

    def close(self) -> None:
        self.fetches.shutdown(wait=False)
        self.listings.shutdown(wait=False)

"""Version listing from destination host tags."""

import logging
import re
from typing import List

from packaging.version import InvalidVersion, Version

from modproxy.cache.singleflight import SingleFlight, wait_for
from modproxy.config import ProxyConfig
from modproxy.exceptions import NotFoundError, UpstreamFailure
from modproxy.model import repo_name
from modproxy.vcs import RefKind, VersionControl

logger = logging.getLogger(__name__)

SEMVER = re.compile(
    r"^v(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)


def is_semver(version: str) -> bool:
    return bool(SEMVER.match(version))


class TagLister:
    """
    Answers version listings by asking the destination host for its tags.

    Results are never cached, the tag set can change at any moment.
    Concurrent listings of the same module share one remote round trip.
    """

    def __init__(self, config: ProxyConfig, vcs: VersionControl, flights: SingleFlight):
        self.config = config
        self.vcs = vcs
        self.flights = flights

    def list_versions(self, module: str) -> List[str]:
        """
        List the tag names of the repository backing module.

        Returns:
            Sorted, de-duplicated tag names (final segment of each tag ref)

        Raises:
            NotFoundError: If the destination host could not be queried
            FetchTimeout: If the host did not answer within list_timeout
        """
        repo = repo_name(module)
        future = self.flights.submit(("list", repo), lambda: self._list_tags(repo))
        return wait_for(future, self.config.list_timeout, f"listing of {module}")

    def _list_tags(self, repo: str) -> List[str]:
        logger.debug(f"Listing tags of {self.config.public_repo_url(repo)}")
        try:
            refs = self.vcs.list_refs(self.config.repo_url(repo))
        except UpstreamFailure as e:
            raise NotFoundError(str(e)) from e
        return sorted({ref.short_name for ref in refs if ref.kind == RefKind.TAG})

    def latest_version(self, module: str) -> str:
        """
        Pick the highest semantic-version tag of module.

        Release versions win over pre-releases; tags that are not semantic
        versions are ignored.

        Raises:
            NotFoundError: If the module has no semantic-version tags
        """
        best = None
        for tag in self.list_versions(module):
            if not is_semver(tag):
                continue
            try:
                parsed = Version(tag)
            except InvalidVersion:
                logger.debug(f"Ignoring tag {tag} of {module}")
                continue
            rank = (not parsed.is_prerelease, parsed)
            if best is None or rank > best[0]:
                best = (rank, tag)

        if best is None:
            raise NotFoundError(f"no tagged versions of {module}")
        return best[1]

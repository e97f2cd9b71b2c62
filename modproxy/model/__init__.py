"""Data model for cache keys and cached artifacts."""

from modproxy.model.info import ModuleInfo, RefOrigin
from modproxy.model.keys import Artifact, CacheKey, repo_name

__all__ = ["Artifact", "CacheKey", "ModuleInfo", "RefOrigin", "repo_name"]

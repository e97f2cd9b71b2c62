"""Module version cache: on-disk store, fetcher and duplicate suppression."""

from modproxy.cache.fetcher import Fetcher
from modproxy.cache.singleflight import SingleFlight, wait_for
from modproxy.cache.store import CacheStore

__all__ = ["CacheStore", "Fetcher", "SingleFlight", "wait_for"]

"""Tests for the on-disk cache store."""

import os
import time

import pytest

from modproxy.cache import CacheStore
from modproxy.cache.store import ORIGIN_FILE
from modproxy.model import Artifact, CacheKey, RefOrigin

TAG_KEY = CacheKey("example.com/pkg", "v1.0.0")
BRANCH_KEY = CacheKey("example.com/pkg", "main")


def write_entry(store, key, kind="tag", origin=True):
    """Install a complete entry for key the way the fetcher does."""
    with store.staging(key) as staging:
        escaped = store.entry_dir(key).name
        (staging / Artifact.INFO.filename(escaped)).write_text(f'{{"Version":"{key.version}"}}')
        (staging / Artifact.MOD.filename(escaped)).write_text("module example.com/pkg\n")
        (staging / Artifact.ZIP.filename(escaped)).write_bytes(b"PK")
        if origin:
            ref = f"refs/tags/{key.version}" if kind == "tag" else f"refs/heads/{key.version}"
            (staging / ORIGIN_FILE).write_text(
                RefOrigin(kind=kind, ref=ref, commit="a" * 40).model_dump_json()
            )
        return store.install(key, staging)


@pytest.fixture
def store(tmp_path):
    return CacheStore(tmp_path / "cache", mutable_ttl=60)


@pytest.mark.short
class TestLayout:
    def test_entry_dir(self, store):
        key = CacheKey("github.com/Azure/sdk", "v1.2.0")
        assert store.entry_dir(key) == store.root / "github.com/!azure/sdk/@v/v1.2.0"

    def test_artifact_paths(self, store):
        entry = store.entry_dir(TAG_KEY)
        assert store.artifact_path(TAG_KEY, Artifact.INFO) == entry / "v1.0.0.info"
        assert store.artifact_path(TAG_KEY, Artifact.MOD) == entry / "go.mod"
        assert store.artifact_path(TAG_KEY, Artifact.ZIP) == entry / "source.zip"

    def test_lock_beside_entry(self, store):
        assert store.lock_path(TAG_KEY) == store.root / "example.com/pkg/@v/.v1.0.0.lock"

    def test_nested_module_does_not_collide(self, store):
        parent = CacheKey("example.com/pkg", "v2.0.0")
        nested = CacheKey("example.com/pkg/v2", "v2.0.0")
        assert store.entry_dir(parent) != store.entry_dir(nested)
        assert not store.entry_dir(nested).is_relative_to(store.entry_dir(parent))


@pytest.mark.short
class TestOpen:
    def test_miss(self, store):
        assert store.open_artifact(TAG_KEY, Artifact.INFO) is None

    def test_hit(self, store):
        write_entry(store, TAG_KEY)
        with store.open_artifact(TAG_KEY, Artifact.MOD) as handle:
            assert handle.read() == b"module example.com/pkg\n"

    def test_incomplete_entry_is_a_miss(self, store):
        write_entry(store, TAG_KEY)
        store.artifact_path(TAG_KEY, Artifact.ZIP).unlink()

        assert not store.is_complete(TAG_KEY)
        assert store.open_artifact(TAG_KEY, Artifact.INFO) is None


@pytest.mark.short
class TestFreshness:
    def test_tag_never_goes_stale(self, store):
        write_entry(store, TAG_KEY)
        assert store.is_fresh(TAG_KEY, now=time.time() + 10 * 365 * 86400)

    def test_branch_goes_stale_after_ttl(self, store):
        write_entry(store, BRANCH_KEY, kind="branch")

        assert store.is_fresh(BRANCH_KEY)
        assert not store.is_fresh(BRANCH_KEY, now=time.time() + 61)

    def test_stale_branch_still_opens_without_check(self, store):
        write_entry(store, BRANCH_KEY, kind="branch")
        info = store.artifact_path(BRANCH_KEY, Artifact.INFO)
        old = time.time() - 3600
        os.utime(info, (old, old))

        assert store.open_artifact(BRANCH_KEY, Artifact.INFO) is None
        handle = store.open_artifact(BRANCH_KEY, Artifact.INFO, check_fresh=False)
        assert handle is not None
        handle.close()

    def test_negative_ttl_disables_refresh(self, tmp_path):
        store = CacheStore(tmp_path / "cache", mutable_ttl=-1)
        write_entry(store, BRANCH_KEY, kind="branch")
        assert store.is_fresh(BRANCH_KEY, now=time.time() + 86400)

    def test_unknown_origin_is_sticky(self, store):
        write_entry(store, BRANCH_KEY, origin=False)

        assert store.origin(BRANCH_KEY) is None
        assert store.is_fresh(BRANCH_KEY, now=time.time() + 86400)

    def test_corrupt_origin_is_unknown(self, store):
        write_entry(store, BRANCH_KEY, kind="branch")
        (store.entry_dir(BRANCH_KEY) / ORIGIN_FILE).write_text("{not json")
        assert store.origin(BRANCH_KEY) is None


@pytest.mark.short
class TestInstall:
    def test_replaces_existing_entry(self, store):
        write_entry(store, BRANCH_KEY, kind="branch")

        with store.staging(BRANCH_KEY) as staging:
            for artifact in Artifact:
                (staging / artifact.filename("main")).write_text("new")
            store.install(BRANCH_KEY, staging)

        with store.open_artifact(BRANCH_KEY, Artifact.ZIP) as handle:
            assert handle.read() == b"new"
        leftovers = [p.name for p in store.entry_dir(BRANCH_KEY).parent.iterdir()]
        assert leftovers == ["main"]

    def test_staging_removed_when_not_installed(self, store):
        with pytest.raises(RuntimeError):
            with store.staging(TAG_KEY) as staging:
                (staging / "partial").write_text("x")
                raise RuntimeError("interrupted")

        assert list(store.entry_dir(TAG_KEY).parent.iterdir()) == []
        assert not store.entry_dir(TAG_KEY).exists()

    def test_staging_lives_beside_entry(self, store):
        with store.staging(TAG_KEY) as staging:
            assert staging.parent == store.entry_dir(TAG_KEY).parent
            assert staging.name.startswith(".tmp-v1.0.0-")

import io
import threading
import zipfile
from datetime import datetime, timedelta, timezone

import pytest
import logging

from modproxy.config import ProxyConfig
from modproxy.exceptions import RefNotFoundError, UpstreamFailure
from modproxy.server import create_app
from modproxy.service import ModuleProxy
from modproxy.vcs import RemoteRef, Snapshot
from modproxy.vcs.dulwich_git import select_ref

RELEASE_TIME = datetime(2023, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeGit:
    """In-memory VersionControl with call counters.

    Repositories are keyed by name (the last element of the clone URL).
    """

    def __init__(self):
        self.repos = {}
        self.commits = {}
        self.urls = []
        self.list_calls = 0
        self.checkout_calls = 0
        self.list_error = None
        self.checkout_error = None
        # set to a threading.Event to hold checkouts until released
        self.checkout_gate = None
        self._lock = threading.Lock()
        self._next = 0

    def add_ref(self, repo, ref_name, files, time=RELEASE_TIME):
        """Point ref_name (e.g. refs/tags/v1.0.0) at a new commit holding files."""
        with self._lock:
            self._next += 1
            commit = f"{self._next:040x}"
        self.commits[commit] = (dict(files), time)
        self.repos.setdefault(repo, {})[ref_name] = commit
        return commit

    def _repo(self, url):
        name = url.rstrip("/").rsplit("/", 1)[-1]
        if name not in self.repos:
            raise UpstreamFailure(f"repository {name} not found")
        return self.repos[name]

    def list_refs(self, url):
        with self._lock:
            self.list_calls += 1
            self.urls.append(url)
        if self.list_error is not None:
            raise self.list_error
        return [RemoteRef.from_name(n, c) for n, c in self._repo(url).items()]

    def checkout_ref(self, url, ref, workspace):
        with self._lock:
            self.checkout_calls += 1
            self.urls.append(url)
        if self.checkout_gate is not None:
            self.checkout_gate.wait(timeout=10)
        if self.checkout_error is not None:
            raise self.checkout_error
        refs = [RemoteRef.from_name(n, c) for n, c in self._repo(url).items()]
        target = select_ref(refs, ref)
        if target is None:
            raise RefNotFoundError(url, ref)
        return Snapshot(ref=target, commit=target.commit, workspace=workspace)

    def resolve_commit_time(self, snapshot):
        return self.commits[snapshot.commit][1]

    def read_file(self, snapshot, path):
        content = self.commits[snapshot.commit][0].get(path)
        return content.encode("utf-8") if content is not None else None

    def create_archive(self, snapshot, dest, prefix):
        files = self.commits[snapshot.commit][0]
        with zipfile.ZipFile(dest, "w") as archive:
            for path in sorted(files):
                archive.writestr(prefix + path, files[path])
        return len(files)


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("modproxy")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream

    logger.removeHandler(handler)
    log_stream.close()


@pytest.fixture
def proxy_config(tmp_path):
    return ProxyConfig(
        port=8000,
        cache_dir=tmp_path / "cache",
        token="s3cret",
        source_namespace="example.com",
        destination_root="github.com/trusted-cloud",
        list_timeout=10,
        fetch_timeout=10,
        max_fetches=4,
    )


@pytest.fixture
def fake_git():
    """A destination host with repo 'pkg': tags v1.0.0, v1.1.0 and branch main."""
    git = FakeGit()
    module = "module example.com/pkg\n\ngo 1.22\n"
    git.add_ref("pkg", "refs/tags/v1.0.0", {"go.mod": module, "pkg.go": "package pkg\n"})
    git.add_ref(
        "pkg",
        "refs/tags/v1.1.0",
        {"go.mod": module, "pkg.go": "package pkg\n\nconst V = 2\n"},
        time=RELEASE_TIME + timedelta(days=30),
    )
    git.add_ref("pkg", "refs/heads/main", {"go.mod": module, "pkg.go": "package pkg // main\n"})
    return git


@pytest.fixture
def module_proxy(proxy_config, fake_git):
    proxy = ModuleProxy(proxy_config, vcs=fake_git)
    yield proxy
    proxy.close()


@pytest.fixture
def client(proxy_config, module_proxy):
    app = create_app(proxy_config, module_proxy)
    app.config["TESTING"] = True
    return app.test_client()

"""Shared fixtures for pkgplan tests"""

import errno
from unittest.mock import Mock

import pytest

from pkgplan.core.config import Config, Handle
from pkgplan.core.errors import FetchError
from pkgplan.core.index import format_files_index, format_index
from pkgplan.core.models import FileIndexRecord, InstalledPackage, PackageIndexRecord
from pkgplan.core.pkgdb import PackageDatabase
from pkgplan.core.sync import DownloadResult

LIST_FIELDS = ('run_depends', 'shlib_requires', 'shlib_provides',
               'provides', 'conflicts', 'replaces')


class FakeFetcher:
    """Index fetcher serving in-memory index data.

    Args:
        indexes: uri -> raw package index
        files: uri -> raw files index
        failing: uris whose sync fails with HTTP 404
    """

    def __init__(self, indexes=None, files=None, failing=()):
        self.indexes = dict(indexes or {})
        self.files = dict(files or {})
        self.failing = set(failing)
        self.fetched = []
        self.synced = []

    def fetch_index(self, uri):
        self.fetched.append(uri)
        if uri not in self.indexes:
            raise FetchError(f"{uri}: no index", code=errno.ENOENT, uri=uri)
        return self.indexes[uri]

    def fetch_files_index(self, uri):
        if uri not in self.files:
            raise FetchError(f"{uri}: no files index", code=errno.ENOENT, uri=uri)
        return self.files[uri]

    def sync_index(self, uri, files=False, progress_callback=None):
        self.synced.append((uri, files))
        if uri in self.failing:
            return DownloadResult(success=False, error="HTTP 404: Not Found", code=404)
        return DownloadResult(success=True)


def record(pkgver, **kwargs) -> PackageIndexRecord:
    """Build an index record, accepting lists for the list fields."""
    for name in LIST_FIELDS:
        if name in kwargs:
            kwargs[name] = tuple(kwargs[name])
    return PackageIndexRecord(pkgver=pkgver, **kwargs)


def index_bytes(*records) -> bytes:
    return format_index(list(records)).encode()


def files_bytes(files) -> bytes:
    """Build a files index from a pkgver -> [paths] mapping."""
    records = [FileIndexRecord(pkgver, tuple(paths)) for pkgver, paths in files.items()]
    return format_files_index(records).encode()


@pytest.fixture
def pkgdb():
    """In-memory installed package database."""
    db = PackageDatabase()
    yield db
    db.close()


@pytest.fixture
def installed(pkgdb):
    """Register installed packages: installed('foo-1.0_1', run_depends=[...])."""
    def _add(pkgver, **kwargs):
        pkg = InstalledPackage(pkgver=pkgver, **kwargs)
        pkgdb.add_package(pkg)
        return pkg
    return _add


@pytest.fixture
def make_handle(pkgdb, tmp_path):
    """Build a Handle over in-memory repositories.

    repos maps each repository uri to its records, in configuration order.
    """
    def _make(repos, files=None, free=(10 ** 12, 4096), cached=False):
        fetcher = FakeFetcher(
            {uri: index_bytes(*records) for uri, records in repos.items()},
            {uri: files_bytes(f) for uri, f in (files or {}).items()},
        )
        config = Config(repositories=list(repos), rootdir=tmp_path)
        cache = Mock()
        cache.has_cached_binary.return_value = cached
        free_space = Mock()
        if isinstance(free, Exception):
            free_space.side_effect = free
        else:
            free_space.return_value = free
        return Handle(config, fetcher=fetcher, pkgdb=pkgdb, cache=cache,
                      free_space=free_space)
    return _make

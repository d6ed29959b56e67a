"""
Configuration and process handle for pkgplan

Configuration file format (one setting per line):
    rootdir=/
    cachedir=var/cache/pkgplan
    metadir=var/db/pkgplan
    arch=x86_64
    repository=https://repo.example.org/current
    repository=/srv/local-repo
    # Comments start with #

``repository`` may be given several times; repositories are used in the
order they appear. Relative cachedir and metadir are taken relative to
rootdir.

The Handle ties the configuration to its collaborators (index fetcher and
parser, installed package store, package cache, filesystem stats) and owns
the repository pool and the transaction plan being built.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .cache import PackageCache
from .fsstats import free_space as fs_free_space
from .index import IndexParser
from .pkgdb import PackageDatabase
from .pool import ForEachCallback, RepositoryPool, SyncResult
from .sync import IndexFetcher
from .transaction import TransactionBuilder

logger = logging.getLogger(__name__)

DEFAULT_ROOTDIR = Path("/")
DEFAULT_CACHEDIR = Path("var/cache/pkgplan")
DEFAULT_METADIR = Path("var/db/pkgplan")
DB_NAME = "pkgdb.sqlite"

KNOWN_KEYS = ('rootdir', 'cachedir', 'metadir', 'arch', 'repository')


@dataclass
class Config:
    """pkgplan configuration."""
    repositories: List[str] = field(default_factory=list)
    rootdir: Path = DEFAULT_ROOTDIR
    cachedir: Path = DEFAULT_CACHEDIR
    metadir: Path = DEFAULT_METADIR
    arch: Optional[str] = None

    def __post_init__(self):
        self.rootdir = Path(self.rootdir)
        self.cachedir = self._rooted(self.cachedir)
        self.metadir = self._rooted(self.metadir)

    def _rooted(self, path) -> Path:
        path = Path(path)
        if path.is_absolute():
            return path
        return self.rootdir / path

    @property
    def db_path(self) -> Path:
        """Installed package database."""
        return self.metadir / DB_NAME


def load_config(path) -> Optional[Config]:
    """Read a configuration file.

    Args:
        path: Configuration file path

    Returns:
        Config, or None if the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No configuration file at {path}")
        return None

    values = {}
    repositories = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                logger.warning(f"{path}:{lineno}: ignoring malformed line")
                continue
            key, value = line.split('=', 1)
            key, value = key.strip(), value.strip()
            if key not in KNOWN_KEYS:
                logger.warning(f"{path}:{lineno}: unknown setting '{key}'")
                continue
            if key == 'repository':
                repositories.append(value)
            else:
                values[key] = value

    return Config(repositories=repositories, **values)


class Handle:
    """Process context: configuration, collaborators, pool and plan.

    Collaborators default to the filesystem-backed implementations built
    from the configuration; tests and embedders pass their own.

    Args:
        config: Config, or None if no configuration is available
        fetcher: Index fetcher (default: IndexFetcher on config.metadir)
        parser: Index parser (default: IndexParser)
        pkgdb: Installed package store (default: PackageDatabase on config.db_path,
            opened on first use)
        cache: Package cache (default: PackageCache on config.cachedir)
        free_space: Callable returning (free_bytes, block_size) for a path
    """

    def __init__(self, config: Optional[Config], fetcher=None, parser=None,
                 pkgdb=None, cache=None,
                 free_space: Callable[[Path], Tuple[int, int]] = None):
        self.config = config
        self.rootdir = config.rootdir if config is not None else DEFAULT_ROOTDIR

        if fetcher is None:
            metadir = config.metadir if config is not None else DEFAULT_ROOTDIR / DEFAULT_METADIR
            fetcher = IndexFetcher(metadir)
        if cache is None:
            cachedir = config.cachedir if config is not None else DEFAULT_ROOTDIR / DEFAULT_CACHEDIR
            cache = PackageCache(cachedir)

        self.fetcher = fetcher
        self.parser = parser or IndexParser()
        self.cache = cache
        self.free_space = free_space or fs_free_space
        self._pkgdb = pkgdb

        self.rpool = RepositoryPool(config, self.fetcher, self.parser)
        self.transd = None
        self.transaction = TransactionBuilder(self)

    @property
    def pkgdb(self):
        if self._pkgdb is None:
            db_path = self.config.db_path if self.config is not None else None
            self._pkgdb = PackageDatabase(db_path)
        return self._pkgdb

    # =========================================================================
    # Repository pool
    # =========================================================================

    def rpool_init(self):
        self.rpool.init()

    def rpool_release(self):
        self.rpool.release()

    def rpool_sync(self, uri: Optional[str] = None) -> SyncResult:
        return self.rpool.sync(uri)

    def rpool_for_each(self, callback: ForEachCallback) -> int:
        return self.rpool.for_each(callback)

    # =========================================================================
    # Transaction
    # =========================================================================

    def transaction_init(self):
        self.transaction.init()

    def transaction_prepare(self):
        return self.transaction.prepare()

    def transaction_release(self):
        self.transaction.release()

    def install_pkg(self, pattern: str, reinstall: bool = False):
        return self.transaction.install_pkg(pattern, reinstall)

    def update_pkg(self, name: str):
        return self.transaction.update_pkg(name)

    def update_packages(self):
        return self.transaction.update_packages()

    def remove_pkg(self, name: str, recursive: bool = False):
        return self.transaction.remove_pkg(name, recursive)

    def configure_pkg(self, name: str):
        return self.transaction.configure_pkg(name)

    # =========================================================================
    # Teardown
    # =========================================================================

    def end(self):
        """Release the plan and the pool, and close the package database."""
        self.transaction_release()
        self.rpool_release()
        if self._pkgdb is not None:
            self._pkgdb.close()
            self._pkgdb = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end()
        return False

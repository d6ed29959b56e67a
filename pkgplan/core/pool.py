"""
Repository pool for pkgplan

Aggregates the indexes of all configured repositories into one queryable
collection. The pool is built lazily on first use and tolerates
unavailable repositories: a repository whose index cannot be fetched or
parsed is skipped, and only a configuration where no repository at all
is usable is an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .errors import FetchError, OutOfMemory, PlanError, Unsupported
from .models import FileIndexRecord, PackageIndexRecord, RepositoryEntry
from .version import parse_dependency, pattern_match, provides_match, vercmp

logger = logging.getLogger(__name__)


class StopFlag:
    """Set by a for_each() callback to stop the iteration."""

    def __init__(self):
        self.done = False

    def set(self):
        self.done = True

    def __bool__(self):
        return self.done


@dataclass
class SyncResult:
    """Result of a pool sync operation."""
    success: bool
    attempted: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)
    last_error: int = 0


# callback(uri, index, done) -> 0 to continue, error code to abort
ForEachCallback = Callable[[str, Sequence[PackageIndexRecord], StopFlag], Optional[int]]


class RepositoryPool:
    """Collection of registered repositories.

    Args:
        config: Configuration with the ordered list of repository uris
            (None means no configuration at all)
        fetcher: Provides fetch_index(), fetch_files_index(), sync_index()
        parser: Provides parse() and parse_files()
    """

    def __init__(self, config, fetcher, parser):
        self.config = config
        self.fetcher = fetcher
        self.parser = parser
        self.entries: Optional[Tuple[RepositoryEntry, ...]] = None

    @property
    def initialized(self) -> bool:
        return self.entries is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self):
        """Register every configured repository with a usable index.

        Does nothing if the pool is already initialized.

        Raises:
            Unsupported: no configuration, or no repository is usable
            OutOfMemory: allocation failure while loading indexes
        """
        if self.entries is not None:
            return
        if self.config is None:
            raise Unsupported("no configuration available")

        entries = []
        ntotal = nmissing = 0

        try:
            for uri in self.config.repositories:
                ntotal += 1
                try:
                    data = self.fetcher.fetch_index(uri)
                except FetchError as e:
                    logger.debug(f"[rpool] `{uri}' cannot be internalized: {e}")
                    nmissing += 1
                    continue

                index = self.parser.parse(data)
                if index is None:
                    logger.debug(f"[rpool] `{uri}' cannot be internalized: invalid index")
                    nmissing += 1
                    continue

                entries.append(RepositoryEntry(
                    uri=uri,
                    index=tuple(index),
                    files=self._load_files_index(uri),
                ))
                logger.debug(f"[rpool] `{uri}' registered.")

            if ntotal - nmissing == 0:
                raise Unsupported("no repositories available")
        except MemoryError:
            self.release()
            raise OutOfMemory("cannot allocate repository pool")
        except Exception:
            self.release()
            raise

        self.entries = tuple(entries)
        logger.debug(f"[rpool] initialized ok ({len(entries)}/{ntotal} repositories).")

    def _load_files_index(self, uri: str) -> Optional[Tuple[FileIndexRecord, ...]]:
        try:
            data = self.fetcher.fetch_files_index(uri)
        except FetchError as e:
            logger.debug(f"[rpool] `{uri}' has no files index: {e}")
            return None
        files = self.parser.parse_files(data)
        return tuple(files) if files is not None else None

    def release(self):
        """Unregister all repositories. No-op if the pool was never initialized."""
        if self.entries is None:
            return
        for entry in self.entries:
            logger.debug(f"[rpool] unregistered repository '{entry.uri}'")
        self.entries = None
        logger.debug("[rpool] released ok.")

    def sync(self, uri: Optional[str] = None) -> SyncResult:
        """Refresh the cached indexes of one or all repositories.

        Every matching repository is tried even if an earlier one fails.
        This refreshes the cached copies only; the in-memory pool is not
        touched, a later init() reads the new copies.

        Args:
            uri: Only sync this repository (None = all)

        Returns:
            SyncResult; last_error holds the code of the last failure

        Raises:
            Unsupported: no configuration
        """
        if self.config is None:
            raise Unsupported("no configuration available")

        result = SyncResult(success=True)

        for repouri in self.config.repositories:
            if uri and repouri != uri:
                continue
            result.attempted += 1

            # Package index first, then the files index
            for files in (False, True):
                res = self.fetcher.sync_index(repouri, files=files)
                if not res.success:
                    result.last_error = res.code
                    result.failed.append((repouri, res.error or ""))
                    logger.warning(f"[rpool] `{repouri}' failed to fetch: {res.error}")
                    break

        result.success = not result.failed
        return result

    # =========================================================================
    # Iteration
    # =========================================================================

    def for_each(self, callback: ForEachCallback) -> int:
        """Call callback(uri, index, done) for each repository in order.

        Initializes the pool if needed. Iteration stops when the callback
        calls done.set() or returns a non-zero error code.

        Returns:
            The last callback return code (0 on success)

        Raises:
            PlanError: if the pool cannot be initialized
        """
        try:
            self.init()
        except Unsupported:
            logger.debug("[rpool] empty repository list.")
            raise
        except PlanError as e:
            logger.debug(f"[rpool] couldn't initialize: {e}")
            raise

        done = StopFlag()
        rv = 0
        for entry in self.entries:
            rv = callback(entry.uri, entry.index, done) or 0
            if rv != 0 or done:
                break
        return rv

    def __iter__(self) -> Iterator[RepositoryEntry]:
        self.init()
        yield from self.entries

    # =========================================================================
    # Queries
    # =========================================================================

    def _arch_ok(self, record: PackageIndexRecord) -> bool:
        arch = getattr(self.config, 'arch', None)
        return not arch or record.arch in (arch, 'noarch')

    def _best_in_index(self, index: Sequence[PackageIndexRecord],
                       pattern: str) -> Optional[PackageIndexRecord]:
        best = None
        for record in index:
            if not self._arch_ok(record) or not pattern_match(record.pkgver, pattern):
                continue
            if best is None or vercmp(record.version, best.version) > 0:
                best = record
        return best

    def find_pkg(self, pattern: str, best: bool = False) -> Optional[Tuple[str, PackageIndexRecord]]:
        """Find a package by name or pattern.

        Args:
            pattern: Package name or dependency pattern
            best: Search all repositories for the newest match instead of
                stopping at the first repository with one

        Returns:
            Tuple of (repository uri, record), or None
        """
        found: List[Tuple[str, PackageIndexRecord]] = []

        def _search(uri, index, done):
            record = self._best_in_index(index, pattern)
            if record is None:
                return 0
            if not found or vercmp(record.version, found[0][1].version) > 0:
                found[:] = [(uri, record)]
            if not best:
                done.set()
            return 0

        self.for_each(_search)
        return found[0] if found else None

    def find_virtualpkg(self, pattern: str) -> Optional[Tuple[str, PackageIndexRecord]]:
        """Find the first package providing pattern as a virtual package."""
        name = parse_dependency(pattern)[0]
        found: List[Tuple[str, PackageIndexRecord]] = []

        def _search(uri, index, done):
            for record in index:
                if (record.pkgname != name and self._arch_ok(record)
                        and provides_match(record.provides, pattern)):
                    found.append((uri, record))
                    done.set()
                    break
            return 0

        self.for_each(_search)
        return found[0] if found else None

    def find_provider(self, pattern: str) -> Optional[Tuple[str, PackageIndexRecord]]:
        """Find a package satisfying pattern, real packages before virtual ones."""
        return self.find_pkg(pattern, best=True) or self.find_virtualpkg(pattern)

    def find_files(self, pkgver: str, uri: Optional[str] = None) -> Tuple[str, ...]:
        """Files shipped by pkgver according to the repository files indexes."""
        for entry in self:
            if uri and entry.uri != uri:
                continue
            files = entry.get_files(pkgver)
            if files:
                return files
        return ()

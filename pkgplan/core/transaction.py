"""
Transaction builder for pkgplan

Turns a set of requested package actions into a frozen, ordered transaction
plan. The work is split into phases run strictly in sequence:

    INIT -> RESOLVE_DEPS -> CHECK_MISSING -> DETECT_CONFLICTS -> CHECK_CONFLICTS
         -> RESOLVE_REPLACEMENTS -> RESOLVE_SHLIBS -> TOPOSORT -> COMPUTE_STATS
         -> FREEZE

A failing phase releases the whole plan: the caller gets the exception
(which carries the missing dependencies or conflicts when relevant) and has
to start over with init().
"""

import logging
from enum import Enum
from typing import List, Optional

from .errors import (
    AlreadyInstalled, ConflictExists, DependencyUnsatisfied, InvalidState,
    NoTransaction, OutOfMemory, PackageNotFound,
)
from .models import (
    InstalledPackage, MissingDependency, TransactionAction, TransactionEntry,
    TransactionPlan,
)
from .resolution import (
    ConflictsMixin, DependsMixin, ReplacesMixin, ShlibsMixin, SortMixin, StatsMixin,
)
from .version import pattern_match, pkg_version, provides_match, vercmp

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Transaction preparation phases, in execution order."""
    INIT = "init"
    RESOLVE_DEPS = "resolve_deps"
    CHECK_MISSING = "check_missing"
    DETECT_CONFLICTS = "detect_conflicts"
    CHECK_CONFLICTS = "check_conflicts"
    RESOLVE_REPLACEMENTS = "resolve_replacements"
    RESOLVE_SHLIBS = "resolve_shlibs"
    TOPOSORT = "toposort"
    COMPUTE_STATS = "compute_stats"
    FREEZE = "freeze"


class TransactionBuilder(DependsMixin, ConflictsMixin, ReplacesMixin,
                         ShlibsMixin, SortMixin, StatsMixin):
    """Builds the transaction plan stored on a handle.

    The plan itself lives in ``handle.transd`` so that the handle owns it;
    the builder only holds a reference to the handle.

    Args:
        handle: Handle providing rpool, pkgdb, cache, rootdir and free_space()
    """

    def __init__(self, handle):
        self.handle = handle

    @property
    def plan(self) -> Optional[TransactionPlan]:
        return self.handle.transd

    @property
    def pool(self):
        return self.handle.rpool

    @property
    def pkgdb(self):
        return self.handle.pkgdb

    @property
    def cache(self):
        return self.handle.cache

    # =========================================================================
    # Working set helpers
    # =========================================================================

    def _find_queued(self, name: str) -> Optional[TransactionEntry]:
        """Return the working set entry for a package name, or None."""
        for entry in self.plan.unsorted_deps:
            if entry.pkgname == name:
                return entry
        return None

    def _working_provider(self, pattern: str) -> Optional[TransactionEntry]:
        """Return a queued install/update satisfying pattern, or None."""
        for entry in self.plan.unsorted_deps:
            if not entry.is_install:
                continue
            if pattern_match(entry.pkgver, pattern) or provides_match(entry.provides, pattern):
                return entry
        return None

    def _installed_provider(self, pattern: str) -> Optional[InstalledPackage]:
        """Return an installed package satisfying pattern that stays installed."""
        for pkg in self.pkgdb.whatprovides(pattern):
            queued = self._find_queued(pkg.pkgname)
            if queued is not None and queued.action != TransactionAction.CONFIGURE:
                continue
            return pkg
        return None

    def _add_missing(self, pattern: str, required_by: str, kind: str = "depends"):
        missing = MissingDependency(pattern, required_by, kind)
        if missing not in self.plan.missing_deps:
            self.plan.missing_deps.append(missing)

    def _queue(self, entry: TransactionEntry) -> TransactionEntry:
        """Add entry to the working set, replacing a queued entry of the same package."""
        deps = self.plan.unsorted_deps
        for i, queued in enumerate(deps):
            if queued.pkgname == entry.pkgname:
                logger.debug(f"[trans] {queued.pkgver} ({queued.action.value}) replaced "
                             f"by {entry.pkgver} ({entry.action.value})")
                deps[i] = entry
                return entry
        deps.append(entry)
        logger.debug(f"[trans] queued {entry.pkgver} ({entry.action.value})")
        return entry

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self):
        """Create an empty plan on the handle.

        Does nothing if a plan already exists, so requests queued so far
        are kept.

        Raises:
            OutOfMemory: if the plan cannot be allocated
        """
        if self.handle.transd is not None:
            return
        try:
            self.handle.transd = TransactionPlan()
        except MemoryError:
            raise OutOfMemory("cannot allocate transaction plan")
        logger.debug("[trans] initialized")

    def release(self):
        """Discard the current plan, if any."""
        if self.handle.transd is None:
            return
        self.handle.transd = None
        logger.debug("[trans] released")

    def prepare(self) -> TransactionPlan:
        """Run every phase on the working set and freeze the plan.

        Returns:
            The frozen TransactionPlan

        Raises:
            NoTransaction: init() was not called
            InvalidState: the plan is already prepared
            DependencyUnsatisfied: missing dependencies or shared libraries
            ConflictExists: conflicting packages or files
            DependencyCycle: the packages cannot be ordered
            OutOfSpace: not enough free space on the root filesystem
            OutOfMemory: allocation failure
        """
        plan = self.plan
        if plan is None:
            raise NoTransaction("no transaction initialized")
        if plan.frozen:
            raise InvalidState("transaction is already prepared")

        try:
            self._run_phase(Phase.RESOLVE_DEPS, self.resolve_deps)
            self._run_phase(Phase.CHECK_MISSING, self._check_missing)
            self._run_phase(Phase.DETECT_CONFLICTS, self.detect_conflicts)
            self._run_phase(Phase.CHECK_CONFLICTS, self._check_conflicts)
            self._run_phase(Phase.RESOLVE_REPLACEMENTS, self.resolve_replacements)
            self._run_phase(Phase.RESOLVE_SHLIBS, self.resolve_shlibs)
            self._run_phase(Phase.TOPOSORT, self.sort)
            self._run_phase(Phase.COMPUTE_STATS, self.compute_stats)
            self._run_phase(Phase.FREEZE, plan.freeze)
        except MemoryError:
            self.release()
            raise OutOfMemory("cannot allocate memory while preparing transaction")
        except Exception as e:
            logger.debug(f"[trans] prepare failed: {e}")
            self.release()
            raise

        logger.debug(f"[trans] prepared {len(plan)} packages")
        return plan

    def _run_phase(self, phase: Phase, func):
        logger.debug(f"[trans] phase {phase.value}")
        func()

    def _check_missing(self):
        self.check_revdeps()
        missing = self.plan.missing_deps
        if missing:
            raise DependencyUnsatisfied(
                f"{len(missing)} unresolved dependencies", missing=missing
            )

    def _check_conflicts(self):
        conflicts = self.plan.conflicts
        if conflicts:
            raise ConflictExists(
                f"{len(conflicts)} conflicts in transaction", conflicts=conflicts
            )

    # =========================================================================
    # Requests
    # =========================================================================

    def install_pkg(self, pattern: str, reinstall: bool = False) -> TransactionEntry:
        """Queue the best available package matching pattern.

        An installed package is queued as an update when the repository
        has a newer version, or when reinstall is set and the versions
        are equal.

        Args:
            pattern: Package name or dependency pattern
            reinstall: Queue the package even if the same version is installed

        Returns:
            The queued entry

        Raises:
            PackageNotFound: no repository provides pattern
            AlreadyInstalled: the installed version is the same or newer
        """
        self.init()
        found = self.pool.find_provider(pattern)
        if found is None:
            raise PackageNotFound(f"package '{pattern}' not found in repository pool")
        uri, record = found

        installed = self.pkgdb.get_metadata(record.pkgname)
        if installed is None:
            entry = TransactionEntry.from_index(record, uri, TransactionAction.INSTALL)
            return self._queue(entry)

        cmp = vercmp(record.version, pkg_version(installed.pkgver))
        if cmp < 0 or (cmp == 0 and not reinstall):
            raise AlreadyInstalled(f"{installed.pkgver} is already installed")

        entry = TransactionEntry.from_index(
            record, uri, TransactionAction.UPDATE, automatic=installed.automatic
        )
        return self._queue(entry)

    def update_pkg(self, name: str) -> TransactionEntry:
        """Queue the update of an installed package to its newest version.

        Raises:
            PackageNotFound: name is not installed or not in any repository
            AlreadyInstalled: no newer version is available
        """
        self.init()
        installed = self.pkgdb.get_metadata(name)
        if installed is None:
            raise PackageNotFound(f"package '{name}' is not installed")

        found = self.pool.find_pkg(name, best=True)
        if found is None:
            raise PackageNotFound(f"package '{name}' not found in repository pool")
        uri, record = found

        if vercmp(record.version, pkg_version(installed.pkgver)) <= 0:
            raise AlreadyInstalled(f"{installed.pkgver} is up to date")

        entry = TransactionEntry.from_index(
            record, uri, TransactionAction.UPDATE, automatic=installed.automatic
        )
        return self._queue(entry)

    def update_packages(self) -> List[TransactionEntry]:
        """Queue updates for every installed package with a newer version.

        Packages missing from the repositories are left alone.

        Returns:
            The queued entries (empty if the system is up to date)
        """
        self.init()
        queued = []
        for installed in self.pkgdb.list_packages():
            try:
                queued.append(self.update_pkg(installed.pkgname))
            except (PackageNotFound, AlreadyInstalled) as e:
                logger.debug(f"[trans] skipping {installed.pkgver}: {e}")
        logger.debug(f"[trans] {len(queued)} packages to update")
        return queued

    def remove_pkg(self, name: str, recursive: bool = False) -> List[TransactionEntry]:
        """Queue the removal of an installed package.

        Args:
            name: Installed package name
            recursive: Also remove automatically installed dependencies
                nothing else needs anymore

        Returns:
            The queued removal entries, requested package first

        Raises:
            PackageNotFound: name is not installed
        """
        self.init()
        installed = self.pkgdb.get_metadata(name)
        if installed is None:
            raise PackageNotFound(f"package '{name}' is not installed")

        entries = [self._queue(TransactionEntry.from_installed(installed))]
        if recursive:
            for orphan in self.find_orphans([name]):
                queued = self._find_queued(orphan.pkgname)
                if queued is not None and queued.action == TransactionAction.REMOVE:
                    continue
                entries.append(self._queue(TransactionEntry.from_installed(orphan)))
        return entries

    def configure_pkg(self, name: str) -> TransactionEntry:
        """Queue the (re)configuration of an installed package.

        Raises:
            PackageNotFound: name is not installed
        """
        self.init()
        installed = self.pkgdb.get_metadata(name)
        if installed is None:
            raise PackageNotFound(f"package '{name}' is not installed")
        entry = TransactionEntry.from_installed(installed, TransactionAction.CONFIGURE)
        return self._queue(entry)

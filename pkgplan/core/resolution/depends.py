"""Dependency discovery, reverse dependency and orphan operations."""

import logging
from typing import List

from ..models import InstalledPackage, TransactionAction, TransactionEntry
from ..version import pattern_name, pkg_version, vercmp

logger = logging.getLogger(__name__)


class DependsMixin:
    """Mixin providing dependency resolution operations.

    Requires:
        - self.plan: TransactionPlan being built
        - self.pool: RepositoryPool
        - self.pkgdb: PackageDatabase of installed packages
        - self._find_queued(), self._working_provider(),
          self._installed_provider(), self._add_missing()
    """

    def resolve_deps(self):
        """Queue every dependency of the working set that is not yet satisfied.

        The working set is scanned by position while new dependencies are
        appended to it, so they get their own dependencies resolved too.
        Dependencies nobody provides are recorded in missing_deps.
        """
        deps = self.plan.unsorted_deps
        i = 0
        while i < len(deps):
            entry = deps[i]
            if entry.is_install:
                self._find_entry_deps(entry)
            i += 1
        logger.debug(f"[trans] working set has {len(deps)} packages, "
                     f"{len(self.plan.missing_deps)} missing dependencies")

    def _find_entry_deps(self, entry: TransactionEntry):
        for pattern in entry.run_depends:
            if self._working_provider(pattern) is not None:
                continue
            if self._installed_provider(pattern) is not None:
                continue

            found = self.pool.find_provider(pattern)
            if found is None:
                logger.debug(f"[trans] {entry.pkgver}: cannot find '{pattern}'")
                self._add_missing(pattern, entry.pkgver)
                continue

            uri, record = found
            queued = self._find_queued(record.pkgname)
            if queued is not None:
                # Queued with a version that does not fit, or queued for removal
                logger.debug(f"[trans] {entry.pkgver}: '{pattern}' unsatisfied by "
                             f"queued {queued.pkgver} ({queued.action.value})")
                self._add_missing(pattern, entry.pkgver)
                continue

            installed = self.pkgdb.get_metadata(record.pkgname)
            if installed is not None:
                if vercmp(record.version, pkg_version(installed.pkgver)) <= 0:
                    self._add_missing(pattern, entry.pkgver)
                    continue
                action = TransactionAction.UPDATE
                automatic = installed.automatic
            else:
                action = TransactionAction.INSTALL
                automatic = True

            dep = TransactionEntry.from_index(record, uri, action, automatic=automatic)
            self.plan.unsorted_deps.append(dep)
            logger.debug(f"[trans] {entry.pkgver}: queued {dep.pkgver} ({action.value}) "
                         f"for '{pattern}' from {uri}")

    # =========================================================================
    # Reverse dependencies
    # =========================================================================

    def _installed_revdeps(self, pkg: InstalledPackage) -> List[InstalledPackage]:
        """Installed packages depending on pkg by name or by one of its provides."""
        names = [pkg.pkgname] + [pattern_name(p) for p in pkg.provides]
        seen = set()
        result = []
        for name in names:
            for rdep in self.pkgdb.whatrequires(name):
                if rdep.pkgname == pkg.pkgname or rdep.pkgname in seen:
                    continue
                seen.add(rdep.pkgname)
                result.append(rdep)
        return result

    def check_revdeps(self):
        """Record installed packages that the transaction would leave broken.

        Removing a package, or updating it to a version that no longer
        matches, breaks installed packages depending on it unless they are
        themselves removed or updated, or something else satisfies them.
        """
        for entry in list(self.plan.unsorted_deps):
            if entry.action not in (TransactionAction.UPDATE, TransactionAction.REMOVE):
                continue
            installed = self.pkgdb.get_metadata(entry.pkgname)
            if installed is None:
                continue

            affected = {entry.pkgname} | {pattern_name(p) for p in installed.provides}

            for rdep in self._installed_revdeps(installed):
                queued = self._find_queued(rdep.pkgname)
                if queued is not None and queued.action != TransactionAction.CONFIGURE:
                    # Removed along, or updated (new deps resolved separately)
                    continue
                for pattern in rdep.run_depends:
                    if pattern_name(pattern) not in affected:
                        continue
                    if self._working_provider(pattern) is not None:
                        continue
                    if self._installed_provider(pattern) is not None:
                        continue
                    logger.debug(f"[trans] {rdep.pkgver} broken by {entry.action.value} "
                                 f"of {entry.pkgver}")
                    self._add_missing(pattern, rdep.pkgver, kind="revdeps")

    # =========================================================================
    # Orphans
    # =========================================================================

    def find_orphans(self, names: List[str]) -> List[InstalledPackage]:
        """Find automatically installed dependencies orphaned by removing names.

        A dependency is an orphan when it was installed automatically and
        every installed package depending on it is removed as well. The
        search repeats until no new orphan shows up.

        Args:
            names: Package names being removed

        Returns:
            Orphans in discovery order
        """
        removing: List[str] = list(names)
        orphans: List[InstalledPackage] = []

        changed = True
        while changed:
            changed = False
            for name in list(removing):
                pkg = self.pkgdb.get_metadata(name)
                if pkg is None:
                    continue
                for pattern in pkg.run_depends:
                    for dep in self.pkgdb.whatprovides(pattern):
                        if dep.pkgname in removing or not dep.automatic:
                            continue
                        rdeps = self._installed_revdeps(dep)
                        if all(r.pkgname in removing for r in rdeps):
                            removing.append(dep.pkgname)
                            orphans.append(dep)
                            changed = True

        return orphans

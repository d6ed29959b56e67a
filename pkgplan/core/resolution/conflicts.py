"""Package and file conflict detection."""

import logging
from typing import Dict, List

from ..models import Conflict, InstalledPackage, TransactionAction, TransactionEntry
from ..version import pattern_match, provides_match

logger = logging.getLogger(__name__)


class ConflictsMixin:
    """Mixin providing conflict detection.

    Requires:
        - self.plan: TransactionPlan being built
        - self.pool: RepositoryPool
        - self.pkgdb: PackageDatabase of installed packages
        - self._find_queued()
    """

    def detect_conflicts(self):
        """Collect every conflict of the working set into plan.conflicts.

        Checks, for each package being installed or updated:
        - another version of the same package queued as well
        - its declared conflicts against queued and installed packages
        - files it ships that another queued or installed package owns

        Nothing is raised here; the caller judges plan.conflicts.
        """
        entries = [e for e in self.plan.unsorted_deps if e.is_install]

        for i, entry in enumerate(entries):
            for other in entries[:i]:
                if other.pkgname == entry.pkgname and other.pkgver != entry.pkgver:
                    self._add_conflict(Conflict('package', entry.pkgver, other.pkgver))
            self._find_pkg_conflicts(entry, entries)

        self._find_file_conflicts(entries)

        if self.plan.conflicts:
            logger.debug(f"[trans] {len(self.plan.conflicts)} conflicts found")

    def _add_conflict(self, conflict: Conflict):
        for known in self.plan.conflicts:
            if known.kind != conflict.kind or known.detail != conflict.detail:
                continue
            if {known.pkgver, known.other} == {conflict.pkgver, conflict.other}:
                return
        logger.debug(f"[trans] conflict: {conflict}")
        self.plan.conflicts.append(conflict)

    def _is_replaced(self, pkgver: str, entries: List[TransactionEntry]) -> bool:
        """True if a queued package declares itself a replacement for pkgver."""
        return any(
            pattern_match(pkgver, pattern)
            for entry in entries
            for pattern in entry.replaces
        )

    def _installed_goes_away(self, pkg: InstalledPackage, entries: List[TransactionEntry]) -> bool:
        queued = self._find_queued(pkg.pkgname)
        if queued is not None and queued.action != TransactionAction.CONFIGURE:
            return True
        return self._is_replaced(pkg.pkgver, entries)

    def _find_pkg_conflicts(self, entry: TransactionEntry, entries: List[TransactionEntry]):
        for pattern in entry.conflicts:
            for other in entries:
                if other is entry or other.pkgname == entry.pkgname:
                    continue
                if pattern_match(other.pkgver, pattern) or provides_match(other.provides, pattern):
                    self._add_conflict(Conflict('package', entry.pkgver, other.pkgver))

            for pkg in self.pkgdb.whatprovides(pattern):
                if pkg.pkgname == entry.pkgname or self._installed_goes_away(pkg, entries):
                    continue
                self._add_conflict(Conflict('package', entry.pkgver, pkg.pkgver))

    def _find_file_conflicts(self, entries: List[TransactionEntry]):
        if not self.pool.initialized:
            return

        owners: Dict[str, TransactionEntry] = {}
        for entry in entries:
            for path in self.pool.find_files(entry.pkgver, entry.repository):
                owner = owners.get(path)
                if owner is None:
                    owners[path] = entry
                elif owner.pkgname != entry.pkgname:
                    self._add_conflict(Conflict('file', entry.pkgver, owner.pkgver, path))
                    continue

                installed_owner = self.pkgdb.file_owner(path)
                if installed_owner is None or installed_owner == entry.pkgname:
                    continue
                pkg = self.pkgdb.get_metadata(installed_owner)
                if pkg is None or self._installed_goes_away(pkg, entries):
                    continue
                self._add_conflict(Conflict('file', entry.pkgver, pkg.pkgver, path))

"""Package replacement resolution."""

import logging

from ..models import TransactionAction, TransactionEntry
from ..version import pattern_match, pattern_name

logger = logging.getLogger(__name__)


class ReplacesMixin:
    """Mixin providing package replacement resolution.

    Requires:
        - self.plan: TransactionPlan being built
        - self.pkgdb: PackageDatabase of installed packages
        - self._find_queued()
    """

    def resolve_replacements(self):
        """Rewrite the working set for packages replacing other packages.

        For each queued package declaring "replaces" patterns:
        - an installed package matching a pattern is queued for removal
          (or its queued install/update is turned into a removal)
        - a queued, not installed package matching a pattern is dropped
        - the replacement inherits the manual install mark of what it
          replaces, so it is not later removed as an orphan
        """
        deps = self.plan.unsorted_deps

        for entry in list(deps):
            if entry not in deps or not entry.is_install or not entry.replaces:
                continue
            for pattern in entry.replaces:
                self._replace_installed(entry, pattern)
                self._replace_queued(entry, pattern)

    def _replace_installed(self, entry: TransactionEntry, pattern: str):
        deps = self.plan.unsorted_deps
        name = pattern_name(pattern)
        if name == entry.pkgname:
            return

        installed = self.pkgdb.get_metadata(name)
        if installed is None or not pattern_match(installed.pkgver, pattern):
            return

        queued = self._find_queued(name)
        if queued is not None and queued.action == TransactionAction.REMOVE:
            queued.replaced_by = entry.pkgver
        else:
            if queued is not None:
                # Superseded install/update of the replaced package
                deps.remove(queued)
                logger.debug(f"[trans] {queued.pkgver} superseded by {entry.pkgver}")
            removal = TransactionEntry.from_installed(installed, TransactionAction.REMOVE)
            removal.replaced_by = entry.pkgver
            deps.append(removal)
            logger.debug(f"[trans] {installed.pkgver} replaced by {entry.pkgver}")

        if not installed.automatic:
            entry.automatic = False

    def _replace_queued(self, entry: TransactionEntry, pattern: str):
        deps = self.plan.unsorted_deps
        for other in list(deps):
            if other is entry or not other.is_install or other.pkgname == entry.pkgname:
                continue
            if not pattern_match(other.pkgver, pattern):
                continue
            if self.pkgdb.get_metadata(other.pkgname) is not None:
                continue
            deps.remove(other)
            if not other.automatic:
                entry.automatic = False
            logger.debug(f"[trans] queued {other.pkgver} superseded by {entry.pkgver}")

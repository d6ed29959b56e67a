"""Shared library satisfiability checks."""

import logging
from typing import List, Set

from ..errors import DependencyUnsatisfied
from ..models import MissingDependency, TransactionAction

logger = logging.getLogger(__name__)


class ShlibsMixin:
    """Mixin providing shared library resolution.

    Requires:
        - self.plan: TransactionPlan being built
        - self.pkgdb: PackageDatabase of installed packages
    """

    def resolve_shlibs(self):
        """Check that every shared library requirement keeps a provider.

        Two directions are checked:
        - libraries required by queued packages must be provided by a
          queued package or an installed one staying on the system
        - libraries that removed or updated packages stop providing must
          not be required by installed packages staying on the system

        Raises:
            DependencyUnsatisfied: listing every unresolved requirement
        """
        deps = self.plan.unsorted_deps
        provided: Set[str] = set()
        for entry in deps:
            if entry.is_install:
                provided.update(entry.shlib_provides)

        # Installed versions of these packages will not stay on the system
        leaving: Set[str] = {
            e.pkgname for e in deps if e.action != TransactionAction.CONFIGURE
        }

        def _available(soname: str) -> bool:
            if soname in provided:
                return True
            return any(name not in leaving for name in self.pkgdb.shlib_providers(soname))

        unresolved: List[MissingDependency] = []

        for entry in deps:
            if not entry.is_install:
                continue
            for soname in entry.shlib_requires:
                if not _available(soname):
                    unresolved.append(MissingDependency(soname, entry.pkgver, kind="shlib"))

        for name in sorted(leaving):
            old = self.pkgdb.get_metadata(name)
            if old is None:
                continue
            for soname in old.shlib_provides:
                if _available(soname):
                    continue
                for consumer in self.pkgdb.shlib_consumers(soname):
                    if consumer.pkgname in leaving:
                        continue
                    missing = MissingDependency(soname, consumer.pkgver, kind="shlib")
                    if missing not in unresolved:
                        unresolved.append(missing)

        if unresolved:
            for missing in unresolved:
                logger.debug(f"[trans] {missing}")
            self.plan.missing_deps.extend(unresolved)
            raise DependencyUnsatisfied(
                f"{len(unresolved)} unresolved shared library requirement(s)",
                missing=unresolved,
            )

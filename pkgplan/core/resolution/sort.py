"""Topological ordering of the working set."""

import heapq
import logging
from typing import Dict, List, Set

from ..errors import DependencyCycle
from ..models import TransactionAction, TransactionEntry
from ..version import pattern_match, provides_match

logger = logging.getLogger(__name__)


def _satisfies(entry: TransactionEntry, pattern: str) -> bool:
    return pattern_match(entry.pkgver, pattern) or provides_match(entry.provides, pattern)


class SortMixin:
    """Mixin providing the topological sort of the transaction.

    Requires:
        - self.plan: TransactionPlan being built
    """

    def _build_edges(self, entries: List[TransactionEntry]) -> Dict[int, Set[int]]:
        """Return successors by index: edges[a] holds b when a must come before b."""
        edges: Dict[int, Set[int]] = {i: set() for i in range(len(entries))}
        by_pkgver = {e.pkgver: i for i, e in enumerate(entries)}

        for i, entry in enumerate(entries):
            if entry.is_install:
                # Dependencies are installed first
                for pattern in entry.run_depends:
                    for j, dep in enumerate(entries):
                        if j != i and dep.is_install and _satisfies(dep, pattern):
                            edges[j].add(i)

            elif entry.action == TransactionAction.REMOVE:
                # Dependents are removed before what they depend on
                for pattern in entry.run_depends:
                    for j, dep in enumerate(entries):
                        if (j != i and dep.action == TransactionAction.REMOVE
                                and _satisfies(dep, pattern)):
                            edges[i].add(j)
                # Replaced packages go away before their replacement
                if entry.replaced_by in by_pkgver:
                    edges[i].add(by_pkgver[entry.replaced_by])

        return edges

    def sort(self):
        """Order the working set into plan.packages.

        Kahn's algorithm; among packages that are ready at the same time the
        one discovered first goes first, so the result is deterministic.

        Raises:
            DependencyCycle: if the packages cannot be ordered
        """
        entries = self.plan.unsorted_deps
        edges = self._build_edges(entries)

        indegree = [0] * len(entries)
        for successors in edges.values():
            for j in successors:
                indegree[j] += 1

        ready = [i for i, degree in enumerate(indegree) if degree == 0]
        heapq.heapify(ready)
        order: List[int] = []

        while ready:
            i = heapq.heappop(ready)
            order.append(i)
            for j in edges[i]:
                indegree[j] -= 1
                if indegree[j] == 0:
                    heapq.heappush(ready, j)

        if len(order) != len(entries):
            cycle = [entries[i].pkgver for i, degree in enumerate(indegree) if degree > 0]
            raise DependencyCycle(
                f"dependency cycle between: {', '.join(cycle)}", cycle=cycle
            )

        self.plan.packages = [entries[i] for i in order]
        logger.debug(f"[trans] sorted {len(order)} packages: "
                     f"{' '.join(e.pkgver for e in self.plan.packages)}")

"""Transaction phase mixins for TransactionBuilder.

Each mixin provides one group of planning phases:
- DependsMixin: Dependency discovery, reverse dependencies, orphans
- ConflictsMixin: Package and file conflict detection
- ReplacesMixin: Package replacement resolution
- ShlibsMixin: Shared library satisfiability
- SortMixin: Topological ordering
- StatsMixin: Counts, sizes and disk space
"""

from .depends import DependsMixin
from .conflicts import ConflictsMixin
from .replaces import ReplacesMixin
from .shlibs import ShlibsMixin
from .sort import SortMixin
from .stats import StatsMixin

__all__ = [
    'DependsMixin',
    'ConflictsMixin',
    'ReplacesMixin',
    'ShlibsMixin',
    'SortMixin',
    'StatsMixin',
]

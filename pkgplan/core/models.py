"""
Data model for pkgplan

Typed records for repository indexes, installed packages and the
transaction plan that the builder produces.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import InvalidState
from .version import parse_pkgver


@dataclass(frozen=True)
class PackageIndexRecord:
    """One package version published by a repository."""
    pkgver: str
    arch: str = "noarch"
    run_depends: Tuple[str, ...] = ()
    shlib_requires: Tuple[str, ...] = ()
    shlib_provides: Tuple[str, ...] = ()
    provides: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()
    replaces: Tuple[str, ...] = ()
    installed_size: int = 0
    filename_size: int = 0
    preserve: bool = False

    @property
    def pkgname(self) -> str:
        return parse_pkgver(self.pkgver)[0]

    @property
    def version(self) -> str:
        return parse_pkgver(self.pkgver)[1]


@dataclass(frozen=True)
class FileIndexRecord:
    """Files shipped by one package version."""
    pkgver: str
    files: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RepositoryEntry:
    """A registered repository: its uri, package index and optional files index."""
    uri: str
    index: Tuple[PackageIndexRecord, ...]
    files: Optional[Tuple[FileIndexRecord, ...]] = None

    def get_pkg(self, name: str) -> Optional[PackageIndexRecord]:
        """Return the first record for a package name, or None."""
        for record in self.index:
            if record.pkgname == name:
                return record
        return None

    def get_files(self, pkgver: str) -> Tuple[str, ...]:
        """Return the files shipped by pkgver according to the files index."""
        if not self.files:
            return ()
        for record in self.files:
            if record.pkgver == pkgver:
                return record.files
        return ()


@dataclass
class InstalledPackage:
    """Metadata of a package installed on the target system."""
    pkgver: str
    arch: str = "noarch"
    installed_size: int = 0
    repository: str = ""
    automatic: bool = False
    run_depends: List[str] = field(default_factory=list)
    shlib_requires: List[str] = field(default_factory=list)
    shlib_provides: List[str] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    @property
    def pkgname(self) -> str:
        return parse_pkgver(self.pkgver)[0]


class TransactionAction(Enum):
    """Action planned for a package."""
    INSTALL = "install"
    UPDATE = "update"
    REMOVE = "remove"
    CONFIGURE = "configure"


class _Freezable:
    """Rejects attribute assignment once ``_frozen`` is set."""

    _frozen = False

    def __setattr__(self, name, value):
        if self._frozen:
            raise InvalidState(f"{self.__class__.__name__} is frozen, cannot set '{name}'")
        super().__setattr__(name, value)

    def __delattr__(self, name):
        if self._frozen:
            raise InvalidState(f"{self.__class__.__name__} is frozen, cannot delete '{name}'")
        super().__delattr__(name)

    def _freeze(self):
        object.__setattr__(self, '_frozen', True)


@dataclass(eq=False)
class TransactionEntry(_Freezable):
    """A single package action in a transaction."""
    pkgver: str
    action: TransactionAction
    repository: str = ""
    arch: str = "noarch"
    installed_size: int = 0
    filename_size: int = 0
    preserve: bool = False
    download: bool = False
    automatic: bool = False
    run_depends: List[str] = field(default_factory=list)
    shlib_requires: List[str] = field(default_factory=list)
    shlib_provides: List[str] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    replaces: List[str] = field(default_factory=list)
    replaced_by: str = ""

    @property
    def pkgname(self) -> str:
        return parse_pkgver(self.pkgver)[0]

    @property
    def is_install(self) -> bool:
        """True for actions that put a new package on disk."""
        return self.action in (TransactionAction.INSTALL, TransactionAction.UPDATE)

    @classmethod
    def from_index(cls, record: PackageIndexRecord, uri: str,
                   action: TransactionAction = TransactionAction.INSTALL,
                   automatic: bool = False) -> 'TransactionEntry':
        """Create an install/update entry from a repository index record."""
        return cls(
            pkgver=record.pkgver,
            action=action,
            repository=uri,
            arch=record.arch,
            installed_size=record.installed_size,
            filename_size=record.filename_size,
            preserve=record.preserve,
            automatic=automatic,
            run_depends=list(record.run_depends),
            shlib_requires=list(record.shlib_requires),
            shlib_provides=list(record.shlib_provides),
            provides=list(record.provides),
            conflicts=list(record.conflicts),
            replaces=list(record.replaces),
        )

    @classmethod
    def from_installed(cls, pkg: InstalledPackage,
                       action: TransactionAction = TransactionAction.REMOVE) -> 'TransactionEntry':
        """Create a remove/configure entry from installed metadata."""
        return cls(
            pkgver=pkg.pkgver,
            action=action,
            repository=pkg.repository,
            arch=pkg.arch,
            installed_size=pkg.installed_size,
            automatic=pkg.automatic,
            run_depends=list(pkg.run_depends),
            shlib_requires=list(pkg.shlib_requires),
            shlib_provides=list(pkg.shlib_provides),
            provides=list(pkg.provides),
        )

    def freeze(self):
        """Make the entry read-only."""
        self.run_depends = tuple(self.run_depends)
        self.shlib_requires = tuple(self.shlib_requires)
        self.shlib_provides = tuple(self.shlib_provides)
        self.provides = tuple(self.provides)
        self.conflicts = tuple(self.conflicts)
        self.replaces = tuple(self.replaces)
        self._freeze()


@dataclass(frozen=True)
class MissingDependency:
    """A dependency that no package in the pool or system satisfies."""
    pattern: str
    required_by: str
    kind: str = "depends"  # 'depends', 'revdeps' or 'shlib'

    def __str__(self):
        if self.kind == "shlib":
            return f"{self.required_by}: shared library '{self.pattern}' not provided"
        if self.kind == "revdeps":
            return f"{self.required_by}: broken, needs '{self.pattern}'"
        return f"{self.required_by}: missing dependency '{self.pattern}'"


@dataclass(frozen=True)
class Conflict:
    """A conflict between two packages."""
    kind: str  # 'package' or 'file'
    pkgver: str
    other: str
    detail: str = ""

    def __str__(self):
        if self.kind == "file":
            return f"{self.pkgver}: file '{self.detail}' conflicts with {self.other}"
        return f"{self.pkgver} conflicts with {self.other}"


@dataclass(frozen=True)
class TransactionStats:
    """Aggregate counts and sizes of a prepared transaction."""
    install_pkgs: int = 0
    update_pkgs: int = 0
    configure_pkgs: int = 0
    remove_pkgs: int = 0
    download_pkgs: int = 0
    installed_size: int = 0
    download_size: int = 0
    removed_size: int = 0
    disk_free_size: Optional[int] = None


class TransactionPlan(_Freezable):
    """Working record of a transaction, read-only once frozen.

    While being built it holds the working lists ``unsorted_deps``,
    ``missing_deps`` and ``conflicts``. ``freeze()`` drops them and
    makes the plan and its entries immutable.
    """

    def __init__(self):
        self.unsorted_deps: List[TransactionEntry] = []
        self.missing_deps: List[MissingDependency] = []
        self.conflicts: List[Conflict] = []
        self.packages: List[TransactionEntry] = []
        self.stats: Optional[TransactionStats] = None

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        """Drop working lists and make the plan immutable."""
        if self._frozen:
            return
        del self.unsorted_deps
        del self.missing_deps
        del self.conflicts
        for entry in self.packages:
            entry.freeze()
        self.packages = tuple(self.packages)
        self._freeze()

    def count(self, action: TransactionAction) -> int:
        """Number of packages planned with the given action."""
        return sum(1 for entry in self.packages if entry.action == action)

    def by_name(self) -> Dict[str, TransactionEntry]:
        """Map package name to its entry."""
        return {entry.pkgname: entry for entry in self.packages}

    def __iter__(self) -> Iterator[TransactionEntry]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)

"""
Error classes for pkgplan

Every error carries an ``errno`` class attribute so callers that only want a
single numeric outcome (no usable repository, unsatisfied dependencies,
conflicts, no space left...) can get one without matching on classes.
"""

import errno as _errno
from typing import List, Optional


class PlanError(Exception):
    """Base class for all pkgplan errors."""

    errno = _errno.EIO

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class Unsupported(PlanError):
    """No usable repository configured."""
    errno = _errno.ENOTSUP


class OutOfMemory(PlanError):
    """Not enough memory to build the transaction."""
    errno = _errno.ENOMEM


class InvalidState(PlanError):
    """Internal state is inconsistent."""
    errno = _errno.EINVAL


class DependencyCycle(InvalidState):
    """Dependency graph contains a cycle."""

    def __init__(self, message: str = "", cycle: Optional[List[str]] = None):
        super().__init__(message)
        self.cycle = cycle or []


class NoTransaction(PlanError):
    """No transaction has been initialized."""
    errno = _errno.ENXIO


class DependencyUnsatisfied(PlanError):
    """Transaction has unresolved dependencies."""
    errno = _errno.ENODEV

    def __init__(self, message: str = "", missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class ConflictExists(PlanError):
    """Transaction contains conflicting packages."""
    errno = _errno.EAGAIN

    def __init__(self, message: str = "", conflicts: Optional[list] = None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class OutOfSpace(PlanError):
    """Not enough free disk space for the transaction."""
    errno = _errno.ENOSPC

    def __init__(self, message: str = "", needed: int = 0, available: int = 0):
        super().__init__(message)
        self.needed = needed
        self.available = available


class PackageNotFound(PlanError):
    """Package not found."""
    errno = _errno.ENOENT


class AlreadyInstalled(PlanError):
    """Package is already installed and up to date."""
    errno = _errno.EEXIST


class FetchError(PlanError):
    """Repository index could not be fetched.

    ``code`` is the fetch-layer code: an HTTP status for remote repositories,
    an OS errno for local ones.
    """
    errno = _errno.EIO

    def __init__(self, message: str = "", code: int = 0, uri: str = ""):
        super().__init__(message)
        self.code = code or _errno.EIO
        self.uri = uri

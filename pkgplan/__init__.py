"""
pkgplan - Transaction planning core for a binary package manager

Builds fully resolved, ordered and size-accounted transaction plans:
- Repository pool aggregating several package indexes
- Dependency, conflict, replacement and shared-library resolution
- Topological ordering and disk space accounting
"""

__version__ = "0.3.0"
__author__ = "pkgplan contributors"

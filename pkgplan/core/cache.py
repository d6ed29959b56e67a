"""
Local binary package cache for pkgplan

Binary packages downloaded from remote repositories are kept as
<cachedir>/<pkgver>.<arch>.xbps. A package already in the cache does not
need to be downloaded again, which the transaction size accounting
relies on.
"""

import logging
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

BINPKG_SUFFIX = ".xbps"


class PackageCache:
    """Lookups in the local binary package cache."""

    def __init__(self, cachedir: Path):
        """Initialize cache.

        Args:
            cachedir: Directory holding downloaded binary packages
        """
        self.cachedir = Path(cachedir)

    def binpkg_path(self, entry) -> Path:
        """Path of the cached binary for a transaction or index entry."""
        return self.cachedir / f"{entry.pkgver}.{entry.arch}{BINPKG_SUFFIX}"

    def has_cached_binary(self, entry) -> bool:
        """Check if the binary package of entry is already in the cache."""
        return self.binpkg_path(entry).is_file()

    def get_usage(self) -> Dict[str, int]:
        """Get cache disk usage by scanning the cache directory.

        Returns:
            Dict with 'total_size' (bytes) and 'file_count'
        """
        total_size = 0
        file_count = 0

        if self.cachedir.exists():
            for binpkg in self.cachedir.glob(f'*{BINPKG_SUFFIX}'):
                try:
                    total_size += binpkg.stat().st_size
                    file_count += 1
                except OSError as e:
                    logger.debug(f"Cannot stat {binpkg}: {e}")

        return {'total_size': total_size, 'file_count': file_count}

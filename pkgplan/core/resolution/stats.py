"""Transaction counts, sizes and disk space accounting."""

import logging

from ..errors import OutOfSpace
from ..models import TransactionAction, TransactionStats
from ..sync import is_remote

logger = logging.getLogger(__name__)

# Detached signature downloaded along with each binary package
SIGNATURE_SIZE = 512


class StatsMixin:
    """Mixin providing transaction statistics.

    Requires:
        - self.plan: TransactionPlan with sorted packages
        - self.pkgdb: PackageDatabase of installed packages
        - self.cache: PackageCache of downloaded binaries
        - self.handle: Handle with rootdir and free_space()
    """

    def compute_stats(self):
        """Count packages per action and account sizes and disk space.

        Install and remove sizes offset each other: only the net change is
        kept. The free space check is skipped when the target filesystem
        cannot be queried.

        Raises:
            OutOfSpace: if the net installed size exceeds free space
        """
        inst_pkgcnt = up_pkgcnt = cf_pkgcnt = rm_pkgcnt = dl_pkgcnt = 0
        instsize = dlsize = rmsize = 0

        for entry in self.plan.packages:
            # Per action counts
            if entry.action == TransactionAction.CONFIGURE:
                cf_pkgcnt += 1
                continue
            elif entry.action == TransactionAction.INSTALL:
                inst_pkgcnt += 1
            elif entry.action == TransactionAction.UPDATE:
                up_pkgcnt += 1
            elif entry.action == TransactionAction.REMOVE:
                rm_pkgcnt += 1

            if entry.is_install:
                instsize += entry.installed_size
                if is_remote(entry.repository) and not self.cache.has_cached_binary(entry):
                    tsize = entry.filename_size + SIGNATURE_SIZE
                    dlsize += tsize
                    instsize += tsize
                    dl_pkgcnt += 1
                    entry.download = True

            # Removing or updating: size of the currently installed version
            if (entry.action == TransactionAction.REMOVE or
                    (entry.action == TransactionAction.UPDATE and not entry.preserve)):
                pkg_metad = self.pkgdb.get_metadata(entry.pkgname)
                if pkg_metad is None:
                    continue
                rmsize += pkg_metad.installed_size

        if instsize > rmsize:
            instsize -= rmsize
            rmsize = 0
        elif rmsize > instsize:
            rmsize -= instsize
            instsize = 0
        else:
            instsize = rmsize = 0

        stats = dict(
            install_pkgs=inst_pkgcnt,
            update_pkgs=up_pkgcnt,
            configure_pkgs=cf_pkgcnt,
            remove_pkgs=rm_pkgcnt,
            download_pkgs=dl_pkgcnt,
            installed_size=instsize,
            download_size=dlsize,
            removed_size=rmsize,
        )

        try:
            free_bytes, _ = self.handle.free_space(self.handle.rootdir)
        except OSError as e:
            logger.debug(f"[trans] cannot query free space on {self.handle.rootdir}: {e}")
            self.plan.stats = TransactionStats(**stats)
            return

        self.plan.stats = TransactionStats(disk_free_size=free_bytes - instsize, **stats)

        if instsize > free_bytes:
            raise OutOfSpace(
                f"not enough free space on {self.handle.rootdir}: "
                f"{instsize} bytes needed, {free_bytes} available",
                needed=instsize,
                available=free_bytes,
            )

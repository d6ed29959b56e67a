"""Tests for transaction size and disk space accounting"""

import pytest

from pkgplan.core.errors import OutOfSpace
from pkgplan.core.models import TransactionAction, TransactionEntry, TransactionPlan
from pkgplan.core.resolution.stats import SIGNATURE_SIZE

LOCAL = "/srv/repo"
REMOTE = "https://repo.example.org/current"


def install(pkgver, size=0, repository=LOCAL, **kwargs):
    return TransactionEntry(pkgver, TransactionAction.INSTALL, repository=repository,
                            installed_size=size, **kwargs)


def update(pkgver, size=0, repository=LOCAL, **kwargs):
    return TransactionEntry(pkgver, TransactionAction.UPDATE, repository=repository,
                            installed_size=size, **kwargs)


def remove(pkgver):
    return TransactionEntry(pkgver, TransactionAction.REMOVE)


class TestComputeStats:
    """Tests for StatsMixin.compute_stats()."""

    @pytest.fixture(autouse=True)
    def helpers(self, make_handle, installed):
        self.installed = installed
        self.make_handle = make_handle

    def _compute(self, entries, **handle_kwargs):
        handle = self.make_handle({}, **handle_kwargs)
        handle.transd = TransactionPlan()
        handle.transd.packages = list(entries)
        handle.transaction.compute_stats()
        return handle

    def test_counts(self):
        self.installed("old-1.0_1")
        self.installed("conf-1.0_1")
        stats = self._compute([
            install("new-1.0_1"),
            update("old-2.0_1"),
            remove("gone-1.0_1"),
            TransactionEntry("conf-1.0_1", TransactionAction.CONFIGURE),
        ]).transd.stats
        assert stats.install_pkgs == 1
        assert stats.update_pkgs == 1
        assert stats.remove_pkgs == 1
        assert stats.configure_pkgs == 1
        assert stats.download_pkgs == 0

    def test_install_exceeds_remove(self):
        self.installed("old-1.0_1", installed_size=400)
        stats = self._compute([install("new-1.0_1", 1000), remove("old-1.0_1")]).transd.stats
        assert stats.installed_size == 600
        assert stats.removed_size == 0

    def test_remove_exceeds_install(self):
        self.installed("old-1.0_1", installed_size=1000)
        stats = self._compute([install("new-1.0_1", 400), remove("old-1.0_1")]).transd.stats
        assert stats.installed_size == 0
        assert stats.removed_size == 600

    def test_equal_totals(self):
        self.installed("old-1.0_1", installed_size=500)
        stats = self._compute([install("new-1.0_1", 500), remove("old-1.0_1")]).transd.stats
        assert stats.installed_size == 0
        assert stats.removed_size == 0

    def test_remove_not_installed_skipped(self):
        stats = self._compute([remove("ghost-1.0_1")]).transd.stats
        assert stats.remove_pkgs == 1
        assert stats.removed_size == 0

    def test_configure_not_sized(self):
        self.installed("conf-1.0_1", installed_size=999)
        entry = TransactionEntry("conf-1.0_1", TransactionAction.CONFIGURE, installed_size=999)
        stats = self._compute([entry]).transd.stats
        assert stats.installed_size == 0
        assert stats.removed_size == 0

    def test_remote_download(self):
        entry = update("foo-2.0_1", repository=REMOTE, filename_size=2048)
        stats = self._compute([entry]).transd.stats
        assert stats.download_size == 2048 + SIGNATURE_SIZE == 2560
        assert stats.installed_size == 2560
        assert stats.download_pkgs == 1
        assert entry.download is True

    def test_remote_cached(self):
        entry = update("foo-2.0_1", repository=REMOTE, filename_size=2048)
        stats = self._compute([entry], cached=True).transd.stats
        assert stats.download_size == 0
        assert stats.installed_size == 0
        assert entry.download is False

    def test_local_repository_no_download(self):
        entry = install("foo-1.0_1", 100, filename_size=2048)
        stats = self._compute([entry]).transd.stats
        assert stats.download_size == 0
        assert stats.installed_size == 100

    def test_update_preserve_keeps_old_size(self):
        self.installed("foo-1.0_1", installed_size=300)
        stats = self._compute([update("foo-2.0_1", 1000, preserve=True)]).transd.stats
        assert stats.installed_size == 1000
        assert stats.removed_size == 0

    def test_update_counts_old_size(self):
        self.installed("foo-1.0_1", installed_size=300)
        stats = self._compute([update("foo-2.0_1", 1000)]).transd.stats
        assert stats.installed_size == 700

    def test_out_of_space(self):
        with pytest.raises(OutOfSpace) as exc_info:
            self._compute([install("big-1.0_1", 600)], free=(500, 4096))
        assert exc_info.value.needed == 600
        assert exc_info.value.available == 500

    def test_enough_space(self):
        handle = self._compute([install("big-1.0_1", 600)], free=(700, 4096))
        assert handle.transd.stats.disk_free_size == 100
        handle.free_space.assert_called_once_with(handle.rootdir)

    def test_free_space_unavailable(self):
        handle = self._compute([install("big-1.0_1", 600)],
                               free=OSError(38, "Function not implemented"))
        assert handle.transd.stats.disk_free_size is None
        assert handle.transd.stats.installed_size == 600

"""Tests for the data model and error classes"""

import errno

import pytest

from pkgplan.core.errors import (
    ConflictExists, DependencyCycle, DependencyUnsatisfied, InvalidState,
    NoTransaction, OutOfMemory, OutOfSpace, PlanError, Unsupported,
)
from pkgplan.core.models import (
    Conflict, InstalledPackage, MissingDependency, TransactionAction,
    TransactionEntry, TransactionPlan,
)
from conftest import record


class TestErrors:
    """Tests for error codes."""

    @pytest.mark.parametrize("cls, code", [
        (Unsupported, errno.ENOTSUP),
        (OutOfMemory, errno.ENOMEM),
        (InvalidState, errno.EINVAL),
        (DependencyCycle, errno.EINVAL),
        (NoTransaction, errno.ENXIO),
        (DependencyUnsatisfied, errno.ENODEV),
        (ConflictExists, errno.EAGAIN),
        (OutOfSpace, errno.ENOSPC),
    ])
    def test_errno(self, cls, code):
        error = cls()
        assert isinstance(error, PlanError)
        assert error.errno == code
        assert error.message

    def test_diagnostics_attached(self):
        missing = [MissingDependency("zlib", "curl-8.5_1")]
        error = DependencyUnsatisfied("1 unresolved", missing=missing)
        assert error.missing == missing
        assert str(error) == "1 unresolved"


class TestEntries:
    """Tests for transaction entries."""

    def test_from_index(self):
        rec = record("foo-1.0_1", arch="x86_64", run_depends=["bar"], filename_size=10)
        entry = TransactionEntry.from_index(rec, "/srv/repo", TransactionAction.UPDATE)
        assert entry.pkgname == "foo"
        assert entry.repository == "/srv/repo"
        assert entry.run_depends == ["bar"]
        assert entry.filename_size == 10
        assert entry.is_install

    def test_from_installed(self):
        pkg = InstalledPackage("foo-1.0_1", installed_size=5, automatic=True)
        entry = TransactionEntry.from_installed(pkg)
        assert entry.action == TransactionAction.REMOVE
        assert entry.automatic is True
        assert not entry.is_install

    def test_freeze(self):
        entry = TransactionEntry("foo-1.0_1", TransactionAction.INSTALL, run_depends=["bar"])
        entry.download = True
        entry.freeze()
        assert entry.run_depends == ("bar",)
        with pytest.raises(InvalidState):
            entry.download = False

    def test_identity_equality(self):
        a = TransactionEntry("foo-1.0_1", TransactionAction.INSTALL)
        b = TransactionEntry("foo-1.0_1", TransactionAction.INSTALL)
        assert a != b


class TestPlan:
    """Tests for TransactionPlan."""

    def test_working_lists(self):
        plan = TransactionPlan()
        assert plan.unsorted_deps == []
        assert plan.missing_deps == []
        assert plan.conflicts == []
        assert not plan.frozen

    def test_freeze(self):
        plan = TransactionPlan()
        plan.packages = [TransactionEntry("foo-1.0_1", TransactionAction.INSTALL),
                         TransactionEntry("bar-1.0_1", TransactionAction.REMOVE)]
        plan.freeze()
        assert plan.frozen
        assert plan.count(TransactionAction.REMOVE) == 1
        assert list(plan.by_name()) == ["foo", "bar"]
        assert [e.pkgver for e in plan] == ["foo-1.0_1", "bar-1.0_1"]
        with pytest.raises(InvalidState):
            plan.packages = ()
        with pytest.raises(InvalidState):
            del plan.stats
        plan.freeze()

    def test_describe(self):
        assert str(MissingDependency("libz.so.1", "curl-8.5_1", "shlib")) == \
            "curl-8.5_1: shared library 'libz.so.1' not provided"
        assert str(Conflict("file", "a-1.0_1", "b-1.0_1", "/etc/x")) == \
            "a-1.0_1: file '/etc/x' conflicts with b-1.0_1"

"""
SQLite database of installed packages

Holds the metadata of every package installed on the target root: sizes,
dependencies, shared libraries and owned files. The transaction builder
queries it for update/remove size accounting, reverse dependencies,
shared library providers and file ownership.
"""

import logging
import sqlite3
import time
from pathlib import Path
from typing import List, Optional

from .models import InstalledPackage
from .version import parse_dependency, pattern_match, provides_match

logger = logging.getLogger(__name__)

# Schema version - increment when schema changes
SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS packages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    pkgver TEXT NOT NULL,
    arch TEXT NOT NULL,
    installed_size INTEGER DEFAULT 0,
    repository TEXT,
    automatic INTEGER DEFAULT 0,
    installed_timestamp INTEGER
);

CREATE TABLE IF NOT EXISTS requires (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    capability TEXT NOT NULL,
    dep_name TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS provides (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    capability TEXT NOT NULL,
    dep_name TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS shlib_requires (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    soname TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS shlib_provides (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    soname TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    path TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_requires_name ON requires(dep_name);
CREATE INDEX IF NOT EXISTS idx_provides_name ON provides(dep_name);
CREATE INDEX IF NOT EXISTS idx_shlib_provides ON shlib_provides(soname);
CREATE INDEX IF NOT EXISTS idx_files_path ON files(path);
"""


class PackageDatabase:
    """Installed package metadata store."""

    def __init__(self, db_path: Optional[Path] = None):
        """Open (and create if needed) the database.

        Args:
            db_path: Database file, None for an in-memory database
        """
        self.db_path = db_path
        if db_path is not None:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(db_path))
        else:
            self.conn = sqlite3.connect(":memory:")
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self):
        self.conn.executescript(SCHEMA)
        row = self.conn.execute("SELECT MAX(version) FROM schema_info").fetchone()
        current_version = row[0]

        if current_version is None:
            self.conn.execute(
                "INSERT OR REPLACE INTO schema_info (version) VALUES (?)",
                (SCHEMA_VERSION,)
            )
            self.conn.commit()
        elif current_version > SCHEMA_VERSION:
            logger.warning(
                f"Database schema version {current_version} is newer than "
                f"supported version {SCHEMA_VERSION}."
            )

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # =========================================================================
    # Package registration
    # =========================================================================

    def add_package(self, pkg: InstalledPackage) -> int:
        """Register an installed package, replacing any previous version.

        Returns:
            Package row ID
        """
        with self.conn:
            self.conn.execute("DELETE FROM packages WHERE name = ?", (pkg.pkgname,))
            cursor = self.conn.execute("""
                INSERT INTO packages (name, pkgver, arch, installed_size,
                                      repository, automatic, installed_timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (pkg.pkgname, pkg.pkgver, pkg.arch, pkg.installed_size,
                  pkg.repository, int(pkg.automatic), int(time.time())))
            pkg_id = cursor.lastrowid

            self.conn.executemany(
                "INSERT INTO requires (pkg_id, capability, dep_name) VALUES (?, ?, ?)",
                [(pkg_id, cap, parse_dependency(cap)[0]) for cap in pkg.run_depends]
            )
            self.conn.executemany(
                "INSERT INTO provides (pkg_id, capability, dep_name) VALUES (?, ?, ?)",
                [(pkg_id, cap, parse_dependency(cap)[0]) for cap in pkg.provides]
            )
            self.conn.executemany(
                "INSERT INTO shlib_requires (pkg_id, soname) VALUES (?, ?)",
                [(pkg_id, soname) for soname in pkg.shlib_requires]
            )
            self.conn.executemany(
                "INSERT INTO shlib_provides (pkg_id, soname) VALUES (?, ?)",
                [(pkg_id, soname) for soname in pkg.shlib_provides]
            )
            self.conn.executemany(
                "INSERT INTO files (pkg_id, path) VALUES (?, ?)",
                [(pkg_id, path) for path in pkg.files]
            )
        return pkg_id

    def remove_package(self, name: str) -> bool:
        """Unregister an installed package.

        Returns:
            True if a package was removed
        """
        with self.conn:
            cursor = self.conn.execute("DELETE FROM packages WHERE name = ?", (name,))
        return cursor.rowcount > 0

    # =========================================================================
    # Queries
    # =========================================================================

    def _get_values(self, pkg_id: int, table: str, column: str) -> List[str]:
        cursor = self.conn.execute(
            f"SELECT {column} FROM {table} WHERE pkg_id = ? ORDER BY id", (pkg_id,)
        )
        return [row[0] for row in cursor]

    def _row_to_package(self, row: sqlite3.Row) -> InstalledPackage:
        pkg_id = row['id']
        return InstalledPackage(
            pkgver=row['pkgver'],
            arch=row['arch'],
            installed_size=row['installed_size'] or 0,
            repository=row['repository'] or "",
            automatic=bool(row['automatic']),
            run_depends=self._get_values(pkg_id, 'requires', 'capability'),
            shlib_requires=self._get_values(pkg_id, 'shlib_requires', 'soname'),
            shlib_provides=self._get_values(pkg_id, 'shlib_provides', 'soname'),
            provides=self._get_values(pkg_id, 'provides', 'capability'),
            files=self._get_values(pkg_id, 'files', 'path'),
        )

    def get_metadata(self, name: str) -> Optional[InstalledPackage]:
        """Get metadata of an installed package by name, None if not installed."""
        row = self.conn.execute(
            "SELECT * FROM packages WHERE name = ?", (name,)
        ).fetchone()
        return self._row_to_package(row) if row else None

    def list_packages(self) -> List[InstalledPackage]:
        """List all installed packages sorted by name."""
        cursor = self.conn.execute("SELECT * FROM packages ORDER BY name")
        return [self._row_to_package(row) for row in cursor.fetchall()]

    def whatrequires(self, name: str) -> List[InstalledPackage]:
        """Installed packages having a dependency on name (real or virtual)."""
        cursor = self.conn.execute("""
            SELECT DISTINCT p.* FROM packages p
            JOIN requires r ON r.pkg_id = p.id
            WHERE r.dep_name = ?
            ORDER BY p.name
        """, (name,))
        return [self._row_to_package(row) for row in cursor.fetchall()]

    def whatprovides(self, pattern: str) -> List[InstalledPackage]:
        """Installed packages satisfying pattern, by name or by virtual provide."""
        name = parse_dependency(pattern)[0]
        result = []

        pkg = self.get_metadata(name)
        if pkg and pattern_match(pkg.pkgver, pattern):
            result.append(pkg)

        cursor = self.conn.execute("""
            SELECT DISTINCT p.* FROM packages p
            JOIN provides pr ON pr.pkg_id = p.id
            WHERE pr.dep_name = ?
            ORDER BY p.name
        """, (name,))
        for row in cursor.fetchall():
            candidate = self._row_to_package(row)
            if candidate.pkgname != name and provides_match(candidate.provides, pattern):
                result.append(candidate)
        return result

    def shlib_providers(self, soname: str) -> List[str]:
        """Names of installed packages providing a shared library."""
        cursor = self.conn.execute("""
            SELECT DISTINCT p.name FROM packages p
            JOIN shlib_provides s ON s.pkg_id = p.id
            WHERE s.soname = ?
            ORDER BY p.name
        """, (soname,))
        return [row[0] for row in cursor]

    def file_owner(self, path: str) -> Optional[str]:
        """Name of the installed package owning a file, None if unowned."""
        row = self.conn.execute("""
            SELECT p.name FROM packages p
            JOIN files f ON f.pkg_id = p.id
            WHERE f.path = ?
        """, (path,)).fetchone()
        return row[0] if row else None

    def shlib_consumers(self, soname: str) -> List[InstalledPackage]:
        """Installed packages requiring a shared library."""
        cursor = self.conn.execute("""
            SELECT DISTINCT p.* FROM packages p
            JOIN shlib_requires s ON s.pkg_id = p.id
            WHERE s.soname = ?
            ORDER BY p.name
        """, (soname,))
        return [self._row_to_package(row) for row in cursor.fetchall()]

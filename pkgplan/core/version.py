"""
Package version handling

A pkgver is "<name>-<version>_<revision>", e.g. "libfoo-devel-1.2.3_2".
Dependency patterns accept the forms:
    foo                 any version
    foo>=1.0            one constraint
    foo>=1.0<2.0        several constraints, all must hold
    foo[>= 1.0]         bracketed constraint
    foo-1.0_1           exact pkgver
"""

import re
from typing import List, Tuple

# Alphanumeric segments used for version comparison
SEGMENT_REGEX = re.compile(r'(\d+|[a-zA-Z]+)')

# Bracketed constraint: "name[>= 1.0]"
BRACKET_REGEX = re.compile(r'^(.+?)\[([<>=!]+)\s*(.+?)\]$')

# Inline constraints: ">=1.0<2.0"
CONSTRAINT_REGEX = re.compile(r'(>=|<=|==|!=|=|>|<)([^<>=!]+)')

# Version part of a pkgver must end with a revision
PKGVER_VERSION_REGEX = re.compile(r'^[^-]*\d[^-]*_\d+$')


def parse_pkgver(pkgver: str) -> Tuple[str, str]:
    """Split a pkgver into name and version.

    Args:
        pkgver: String like "firefox-120.0_1"

    Returns:
        Tuple of (name, version); version is '' if pkgver has none
    """
    parts = pkgver.rsplit('-', 1)
    if len(parts) == 2 and parts[0] and PKGVER_VERSION_REGEX.match(parts[1]):
        return parts[0], parts[1]
    return pkgver, ''


def pkg_name(pkgver: str) -> str:
    """Return the package name of a pkgver."""
    return parse_pkgver(pkgver)[0]


def pkg_version(pkgver: str) -> str:
    """Return the version (with revision) of a pkgver."""
    return parse_pkgver(pkgver)[1]


def pkg_revision(pkgver: str) -> int:
    """Return the revision number of a pkgver, 0 if there is none."""
    version = pkg_version(pkgver)
    return _split_revision(version)[1]


def _split_revision(version: str) -> Tuple[str, int]:
    if '_' in version:
        base, rev = version.rsplit('_', 1)
        if rev.isdigit():
            return base, int(rev)
    return version, 0


def _compare_segments(a: str, b: str) -> int:
    seg_a = SEGMENT_REGEX.findall(a)
    seg_b = SEGMENT_REGEX.findall(b)

    for x, y in zip(seg_a, seg_b):
        x_num = x.isdigit()
        y_num = y.isdigit()
        if x_num and y_num:
            xi, yi = int(x), int(y)
            if xi != yi:
                return 1 if xi > yi else -1
        elif x_num:
            # Numeric segments are newer than alpha ones (1.0 > 1.0rc)
            return 1
        elif y_num:
            return -1
        elif x != y:
            return 1 if x > y else -1

    # One side ran out: a trailing alpha segment marks a pre-release
    # (1.0rc1 < 1.0), a trailing numeric one a newer version (1.0.1 > 1.0)
    common = min(len(seg_a), len(seg_b))
    if len(seg_a) > common:
        return 1 if seg_a[common].isdigit() else -1
    if len(seg_b) > common:
        return -1 if seg_b[common].isdigit() else 1
    return 0


def vercmp(a: str, b: str) -> int:
    """Compare two versions.

    Args:
        a: First version, e.g. "1.2.3_1"
        b: Second version

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    base_a, rev_a = _split_revision(a)
    base_b, rev_b = _split_revision(b)

    result = _compare_segments(base_a, base_b)
    if result != 0:
        return result
    if rev_a != rev_b:
        return 1 if rev_a > rev_b else -1
    return 0


def parse_dependency(pattern: str) -> Tuple[str, List[Tuple[str, str]]]:
    """Parse a dependency pattern into a name and version constraints.

    Args:
        pattern: String like "libfoo>=1.0" or "bar[>= 2.0]" or just "baz"

    Returns:
        Tuple of (name, [(operator, version), ...])
    """
    pattern = pattern.strip()

    match = BRACKET_REGEX.match(pattern)
    if match:
        return match.group(1), [(match.group(2), match.group(3))]

    for i, char in enumerate(pattern):
        if char in '<>=!':
            if i == 0:
                break
            return pattern[:i], CONSTRAINT_REGEX.findall(pattern[i:])

    name, version = parse_pkgver(pattern)
    if version:
        return name, [('==', version)]

    return pattern, []


def pattern_name(pattern: str) -> str:
    """Return the package name a dependency pattern refers to."""
    return parse_dependency(pattern)[0]


def _version_satisfies(version: str, op: str, wanted: str) -> bool:
    result = vercmp(version, wanted)
    if op in ('==', '='):
        return result == 0
    if op == '!=':
        return result != 0
    if op == '>=':
        return result >= 0
    if op == '<=':
        return result <= 0
    if op == '>':
        return result > 0
    if op == '<':
        return result < 0
    return False


def pattern_match(pkgver: str, pattern: str) -> bool:
    """Check whether a pkgver satisfies a dependency pattern.

    Args:
        pkgver: Candidate, e.g. "foo-1.2_1"
        pattern: Dependency pattern, e.g. "foo>=1.0"

    Returns:
        True if name matches and every constraint holds
    """
    name, version = parse_pkgver(pkgver)
    wanted_name, constraints = parse_dependency(pattern)

    if name != wanted_name:
        return False
    for op, wanted in constraints:
        if not version or not _version_satisfies(version, op, wanted):
            return False
    return True


def provides_match(provides: List[str], pattern: str) -> bool:
    """Check whether any virtual provide ("name-version_rev") satisfies a pattern.

    Unversioned provides match unversioned patterns only.
    """
    wanted_name, constraints = parse_dependency(pattern)
    for provide in provides:
        if pattern_match(provide, pattern):
            return True
        if not constraints and provide == wanted_name:
            return True
    return False

"""
Repository index parser for pkgplan

Index files contain lightweight package metadata. Format: tag lines
(@requires, @shlib-provides, etc.) followed by an @info line which
terminates each package definition:

    @provides@libfoo-1.0_1
    @requires@glibc>=2.36_1@zlib
    @shlib-provides@libfoo.so.1
    @filesize@20480
    @info@foo-1.0_1@x86_64@65536

Files indexes use the same layout with one @files line per path; the
rest of the line is the path, '@' included:

    @files@/usr/bin/foo
    @files@/usr/lib/systemd/system/foo@.service
    @info@foo-1.0_1
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from .compression import decompress_bytes
from .models import FileIndexRecord, PackageIndexRecord
from .version import parse_pkgver

logger = logging.getLogger(__name__)

# Tags holding a list of values
LIST_TAGS = {
    'provides': 'provides',
    'requires': 'run_depends',
    'conflicts': 'conflicts',
    'replaces': 'replaces',
    'shlib-requires': 'shlib_requires',
    'shlib-provides': 'shlib_provides',
}


def _split_index_line(line: str) -> List[str]:
    """Cut a package index line into fields.

    An '@' nested in parentheses, as in bundled(npm(@xterm/addon-canvas)),
    is part of the value.
    """
    fields = []
    start = depth = 0
    for pos, char in enumerate(line):
        if char == '(':
            depth += 1
        elif char == ')' and depth:
            depth -= 1
        elif char == '@' and not depth:
            fields.append(line[start:pos])
            start = pos + 1
    fields.append(line[start:])
    return fields


def _to_int(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def iter_index(content: str) -> Iterator[PackageIndexRecord]:
    """Parse index text and yield package records.

    Tags come BEFORE @info. When we encounter @info, we create the
    record with all accumulated tags.
    """
    current_tags: Dict[str, Any] = {}

    for line in content.split('\n'):
        line = line.strip()
        if not line or not line.startswith('@'):
            continue

        parts = _split_index_line(line)
        if len(parts) < 2:
            continue

        tag = parts[1]
        values = parts[2:]

        if tag == 'info':
            pkgver = values[0] if values else ''
            name, version = parse_pkgver(pkgver)
            if not version:
                logger.debug(f"Skipping index entry with invalid pkgver '{pkgver}'")
                current_tags = {}
                continue

            yield PackageIndexRecord(
                pkgver=pkgver,
                arch=values[1] if len(values) > 1 and values[1] else 'noarch',
                installed_size=_to_int(values[2]) if len(values) > 2 else 0,
                filename_size=_to_int(current_tags.get('filesize', '0')),
                preserve=current_tags.get('preserve', False),
                run_depends=tuple(current_tags.get('run_depends', ())),
                shlib_requires=tuple(current_tags.get('shlib_requires', ())),
                shlib_provides=tuple(current_tags.get('shlib_provides', ())),
                provides=tuple(current_tags.get('provides', ())),
                conflicts=tuple(current_tags.get('conflicts', ())),
                replaces=tuple(current_tags.get('replaces', ())),
            )
            current_tags = {}

        elif tag in LIST_TAGS:
            current_tags[LIST_TAGS[tag]] = [v for v in values if v]
        elif tag == 'filesize':
            current_tags['filesize'] = values[0] if values else '0'
        elif tag == 'preserve':
            current_tags['preserve'] = True


def iter_files_index(content: str) -> Iterator[FileIndexRecord]:
    """Parse files index text and yield file records."""
    files: List[str] = []

    for line in content.split('\n'):
        line = line.strip()
        if not line.startswith('@'):
            continue

        tag, _, value = line[1:].partition('@')

        if tag == 'files':
            if value:
                files.append(value)
        elif tag == 'info':
            pkgver = value.split('@', 1)[0]
            if pkgver:
                yield FileIndexRecord(pkgver=pkgver, files=tuple(files))
            files = []


def _decode(data: Optional[bytes]) -> Optional[str]:
    if not data:
        return None
    try:
        return decompress_bytes(data).decode('utf-8')
    except Exception as e:
        logger.debug(f"Cannot decode index: {e}")
        return None


def parse_index(data: Optional[bytes]) -> Optional[List[PackageIndexRecord]]:
    """Parse raw (possibly compressed) index data.

    Args:
        data: Index file content

    Returns:
        List of records, or None if the data is absent, undecodable or
        holds no package at all
    """
    content = _decode(data)
    if content is None:
        return None
    records = list(iter_index(content))
    return records or None


def parse_files_index(data: Optional[bytes]) -> Optional[List[FileIndexRecord]]:
    """Parse raw (possibly compressed) files index data.

    Returns:
        List of records, or None if the data cannot be used
    """
    content = _decode(data)
    if content is None:
        return None
    records = list(iter_files_index(content))
    return records or None


class IndexParser:
    """Default index parser handed to the repository pool."""

    def parse(self, data: Optional[bytes]) -> Optional[List[PackageIndexRecord]]:
        return parse_index(data)

    def parse_files(self, data: Optional[bytes]) -> Optional[List[FileIndexRecord]]:
        return parse_files_index(data)


def format_index(records: List[PackageIndexRecord]) -> str:
    """Serialize records back into index text (used when publishing indexes)."""
    lines = []
    reverse_tags = {attr: tag for tag, attr in LIST_TAGS.items()}
    for record in records:
        for attr, tag in reverse_tags.items():
            values = getattr(record, attr)
            if values:
                lines.append('@' + '@'.join((tag,) + tuple(values)))
        if record.filename_size:
            lines.append(f"@filesize@{record.filename_size}")
        if record.preserve:
            lines.append("@preserve")
        lines.append(f"@info@{record.pkgver}@{record.arch}@{record.installed_size}")
    return '\n'.join(lines) + '\n'


def format_files_index(records: List[FileIndexRecord]) -> str:
    """Serialize files records back into files index text."""
    lines = []
    for record in records:
        lines.extend(f"@files@{path}" for path in record.files)
        lines.append(f"@info@{record.pkgver}")
    return '\n'.join(lines) + '\n'

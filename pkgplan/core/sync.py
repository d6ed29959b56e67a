"""
Repository index fetching for pkgplan

Reads repository index files and refreshes the cached copies of remote
ones. Local repositories (plain paths or file:// URIs) are always read in
place; remote ones (http, https, ftp) are read from the copy kept under
the metadata directory, which sync_index() downloads.
"""

import errno
import hashlib
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from .errors import FetchError

logger = logging.getLogger(__name__)

# Index file names, relative to the repository uri
INDEX_PATH = "index.zst"
FILES_INDEX_PATH = "index-files.zst"

REMOTE_SCHEMES = ('http', 'https', 'ftp')

USER_AGENT = 'pkgplan/0.3'
CHUNK_SIZE = 8192


@dataclass
class DownloadResult:
    """Result of a download operation."""
    success: bool
    path: Optional[Path] = None
    size: int = 0
    md5: Optional[str] = None
    error: Optional[str] = None
    code: int = 0


def is_remote(uri: str) -> bool:
    """Check if a repository uri points to a remote server."""
    return urlparse(uri).scheme in REMOTE_SCHEMES


def get_hostname_from_url(url: str) -> str:
    """Extract hostname from a URL for cache organization."""
    parsed = urlparse(url)
    return parsed.netloc or "local"


def _index_name(files: bool) -> str:
    return FILES_INDEX_PATH if files else INDEX_PATH


def build_index_url(uri: str) -> str:
    """Build full URL for the package index."""
    return f"{uri.rstrip('/')}/{INDEX_PATH}"


def build_files_index_url(uri: str) -> str:
    """Build full URL for the files index."""
    return f"{uri.rstrip('/')}/{FILES_INDEX_PATH}"


def _failed(tmp_dest: Path, error: str, code: int) -> DownloadResult:
    tmp_dest.unlink(missing_ok=True)
    return DownloadResult(success=False, error=error, code=code)


def download_file(url: str, dest: Path,
                  progress_callback: Callable[[int, int], None] = None,
                  timeout: int = 30) -> DownloadResult:
    """Fetch url into dest.

    Data goes to "<dest>.part" and only replaces dest once complete, so a
    failed refresh leaves the previous cached index in place.

    Args:
        url: Index URL
        dest: Cached copy to refresh
        progress_callback: Optional callback(downloaded_bytes, total_bytes)
        timeout: Connection timeout in seconds

    Returns:
        DownloadResult; on failure ``code`` is the HTTP status or errno
    """
    tmp_dest = dest.with_name(dest.name + '.part')
    req = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})
    digest = hashlib.md5()
    received = 0

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            expected = int(response.headers.get('Content-Length', 0))
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_dest, 'wb') as out:
                for block in iter(lambda: response.read(CHUNK_SIZE), b''):
                    out.write(block)
                    digest.update(block)
                    received += len(block)
                    if progress_callback:
                        progress_callback(received, expected)
        tmp_dest.replace(dest)
    except urllib.error.HTTPError as e:
        return _failed(tmp_dest, f"HTTP {e.code}: {e.reason}", e.code)
    except urllib.error.URLError as e:
        code = getattr(e.reason, 'errno', None) or errno.EHOSTUNREACH
        return _failed(tmp_dest, f"URL error: {e.reason}", code)
    except OSError as e:
        return _failed(tmp_dest, str(e), e.errno or errno.EIO)

    logger.debug(f"Downloaded {url} ({received} bytes)")
    return DownloadResult(success=True, path=dest, size=received, md5=digest.hexdigest())


class IndexFetcher:
    """Fetches repository index files.

    Args:
        metadir: Directory holding cached copies of remote indexes
        timeout: Network timeout in seconds
    """

    def __init__(self, metadir: Path, timeout: int = 30):
        self.metadir = Path(metadir)
        self.timeout = timeout

    def local_repo_path(self, uri: str) -> Path:
        """Return the directory holding the index files of a repository.

        Local repositories are used in place, remote ones map to
        <metadir>/<hostname>/<path>/.
        """
        parsed = urlparse(uri)
        if parsed.scheme == 'file':
            return Path(parsed.path)
        if parsed.scheme in REMOTE_SCHEMES:
            path = parsed.path.strip('/').replace('/', '_') or '_'
            return self.metadir / get_hostname_from_url(uri) / path
        return Path(uri)

    def _read(self, uri: str, files: bool) -> bytes:
        path = self.local_repo_path(uri) / _index_name(files)
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchError(f"{uri}: cannot read {path.name}: {e.strerror}",
                             code=e.errno, uri=uri)

    def fetch_index(self, uri: str) -> bytes:
        """Return the raw package index of a repository.

        Raises:
            FetchError: if the index is not available
        """
        return self._read(uri, files=False)

    def fetch_files_index(self, uri: str) -> bytes:
        """Return the raw files index of a repository.

        Raises:
            FetchError: if the files index is not available
        """
        return self._read(uri, files=True)

    def sync_index(self, uri: str, files: bool = False,
                   progress_callback: Callable[[int, int], None] = None) -> DownloadResult:
        """Refresh the cached copy of a repository index.

        Local repositories need no download; only the presence of the index
        is checked.

        Returns:
            DownloadResult; failures carry the fetch-layer code
        """
        dest = self.local_repo_path(uri) / _index_name(files)

        if not is_remote(uri):
            if dest.exists():
                return DownloadResult(success=True, path=dest, size=dest.stat().st_size)
            return DownloadResult(success=False, error=f"File not found: {dest}",
                                  code=errno.ENOENT)

        url = build_files_index_url(uri) if files else build_index_url(uri)
        logger.debug(f"Downloading {url} to {dest}")
        return download_file(url, dest, progress_callback, self.timeout)

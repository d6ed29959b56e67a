"""Filesystem statistics for disk space accounting."""

import os
from pathlib import Path
from typing import Tuple, Union


def free_space(path: Union[str, Path]) -> Tuple[int, int]:
    """Return free space available to unprivileged users on a filesystem.

    Args:
        path: Any path on the target filesystem

    Returns:
        Tuple of (free_bytes, block_size)

    Raises:
        OSError: if the filesystem cannot be queried
    """
    st = os.statvfs(str(path))
    return st.f_bavail * st.f_frsize, st.f_frsize

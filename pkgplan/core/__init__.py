"""Core modules for pkgplan"""

from .compression import decompress_bytes
from .config import Config, Handle, load_config
from .errors import PlanError
from .pool import RepositoryPool
from .transaction import TransactionBuilder

__all__ = [
    'decompress_bytes',
    'Config',
    'Handle',
    'load_config',
    'PlanError',
    'RepositoryPool',
    'TransactionBuilder',
]

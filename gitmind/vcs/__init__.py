"""Version-control operations."""

from .base import CommitInfo, GitOperations
from .repo import GitRepoOperations

__all__ = [
    'CommitInfo',
    'GitOperations',
    'GitRepoOperations',
]

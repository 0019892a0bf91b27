"""Commit message package."""

from .message import CONVENTIONAL_TYPES, CommitMessage, truncate_title
from .strategy import (
    CommitMessageStrategy,
    ConventionalCommitStrategy,
    SimpleCommitStrategy,
    strategy_for,
)
from .validator import CommitMessageValidator

__all__ = [
    'CONVENTIONAL_TYPES',
    'CommitMessage',
    'truncate_title',
    'CommitMessageStrategy',
    'ConventionalCommitStrategy',
    'SimpleCommitStrategy',
    'strategy_for',
    'CommitMessageValidator',
]

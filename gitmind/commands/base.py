"""Base command class for git operations.

This module provides the abstract base class for all git commands,
implementing the Command Pattern with observer support.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel
from rich.console import Console

from ..models import MergeStrategy
from ..observers import GitOperationObserver
from ..vcs.base import GitOperations

SHORT_HASH_LENGTH = 7


class CommandResult(BaseModel):
    """Outcome of an executed command."""

    success: bool = True
    message: str = ""
    commit_hash: Optional[str] = None
    branch_created: Optional[str] = None
    substituted: bool = False
    strategy: Optional[MergeStrategy] = None


class GitCommand(ABC):
    """Abstract base class for git commands.

    Commands run a fixed sequence of operations against a
    :class:`GitOperations` port and notify observers as they go. Failures are
    raised, not swallowed, so the caller can report the specific cause.

    Attributes:
        ops (GitOperations): Version-control operations to run
        path (str): Path of the repository to operate on
        console (Console): Rich console for output
        observers (List[GitOperationObserver]): List of observers to notify
    """

    def __init__(self, ops: GitOperations, path: str, console: Optional[Console] = None):
        """Initialize the command.

        Args:
            ops: Version-control operations to run
            path: Path of the repository to operate on
            console: Optional Rich console for output
        """
        self.ops = ops
        self.path = path
        self.console = console or Console()
        self.observers: List[GitOperationObserver] = []

    def add_observer(self, observer: GitOperationObserver) -> None:
        """Add an observer to be notified of command execution.

        Args:
            observer: The observer to add
        """
        self.observers.append(observer)

    def remove_observer(self, observer: GitOperationObserver) -> None:
        """Remove an observer from the notification list.

        Args:
            observer: The observer to remove
        """
        self.observers.remove(observer)

    def short_head(self) -> Optional[str]:
        """Return the abbreviated hash of the latest commit, if any."""
        commits = self.ops.log(self.path, 1)
        if not commits:
            return None
        return commits[0].hash[:SHORT_HASH_LENGTH]

    @abstractmethod
    async def execute(self) -> CommandResult:
        """Execute the git command.

        Returns:
            CommandResult: What was done

        Raises:
            GitMindError: If any step of the command fails
        """
        pass

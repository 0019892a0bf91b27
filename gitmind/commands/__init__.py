"""Git operation commands using the Command Pattern.

Each command wraps a fixed sequence of :class:`gitmind.vcs.GitOperations`
calls and reports progress to its observers.

Example:
    ```python
    from gitmind.commands import CommitCommand
    from gitmind.observers import FileLogObserver

    commit_cmd = CommitCommand(ops, repo_path, message)
    commit_cmd.add_observer(FileLogObserver("git.log"))
    result = await commit_cmd.execute()
    ```
"""

from .base import CommandResult, GitCommand
from .branch import DeleteBranchCommand, RenameBranchCommand, SetUpstreamCommand, branch_overview
from .commit import CommitCommand, CreateBranchCommand
from .merge import MergeCommand, default_merge_message, merge_status, preview_merge
from .push import PushCommand

__all__ = [
    "CommandResult",
    "GitCommand",
    "CommitCommand",
    "CreateBranchCommand",
    "DeleteBranchCommand",
    "MergeCommand",
    "PushCommand",
    "RenameBranchCommand",
    "SetUpstreamCommand",
    "branch_overview",
    "default_merge_message",
    "merge_status",
    "preview_merge",
]

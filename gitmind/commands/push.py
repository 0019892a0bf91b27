"""Command for pushing a branch to its remote."""

from typing import Optional

from rich.console import Console

from ..errors import NotAVcsRepository, VcsCommandFailed
from ..vcs.base import GitOperations
from .base import CommandResult, GitCommand


class PushCommand(GitCommand):
    """Push a branch to the remote, setting upstream tracking on first push.

    Attributes:
        branch (Optional[str]): Branch to push, the current one when None
        force (bool): Force-push
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        branch: Optional[str] = None,
        force: bool = False,
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.branch = branch
        self.force = force

    async def execute(self) -> CommandResult:
        branch = self.branch or self.ops.current_branch(self.path)

        if not self.ops.remote_names(self.path):
            for observer in self.observers:
                await observer.on_push_completed(False, branch)
            raise VcsCommandFailed("no remote repository configured")

        try:
            self.ops.push(self.path, branch, force=self.force)
        except (VcsCommandFailed, NotAVcsRepository):
            for observer in self.observers:
                await observer.on_push_completed(False, branch)
            raise

        for observer in self.observers:
            await observer.on_push_completed(True, branch)
        return CommandResult(message=f"Pushed '{branch}' to remote")

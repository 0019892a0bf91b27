"""Commands for committing changes, directly or on a new branch."""

from typing import Optional

from rich.console import Console

from ..commit_message import CommitMessage
from ..errors import VcsCommandFailed
from ..vcs.base import GitOperations
from .base import CommandResult, GitCommand


class CommitCommand(GitCommand):
    """Commit pending changes on the current branch.

    Attributes:
        message (CommitMessage): The message to commit with
        stage_all (bool): Stage every change before committing
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        message: CommitMessage,
        stage_all: bool = True,
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.message = message
        self.stage_all = stage_all

    async def execute(self) -> CommandResult:
        """Stage (if requested) and commit with the full message.

        Raises:
            NothingToCommit: If git reports no staged changes
        """
        branch = self.ops.current_branch(self.path)
        if self.stage_all:
            self.ops.add(self.path)
        self.ops.commit(self.path, self.message.full_message)

        for observer in self.observers:
            await observer.on_commit_created(self.message, branch)

        return CommandResult(
            message="Changes committed successfully",
            commit_hash=self.short_head(),
        )


class CreateBranchCommand(GitCommand):
    """Create a branch, switch to it and commit the pending changes there.

    In a repository without commits a branch cannot be created, so the
    changes are committed on the current ref instead and the result reports
    the substitution.

    Attributes:
        message (CommitMessage): The message to commit with
        branch_name (str): Name of the branch to create
        stage_all (bool): Stage every change before committing
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        message: CommitMessage,
        branch_name: str,
        stage_all: bool = True,
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.message = message
        self.branch_name = branch_name
        self.stage_all = stage_all

    def _is_empty_repo(self) -> bool:
        try:
            return not self.ops.log(self.path, 1)
        except VcsCommandFailed:
            return True

    async def _commit(self, branch: str) -> None:
        if self.stage_all:
            self.ops.add(self.path)
        self.ops.commit(self.path, self.message.full_message)
        for observer in self.observers:
            await observer.on_commit_created(self.message, branch)

    async def execute(self) -> CommandResult:
        if not self.branch_name:
            raise ValueError("branch name is required for create-branch action")

        current = self.ops.current_branch(self.path)

        if self._is_empty_repo():
            await self._commit(current)
            return CommandResult(
                message=f"Made initial commit on {current} (cannot create branch in empty repo)",
                commit_hash=self.short_head(),
                substituted=True,
            )

        self.ops.create_branch(self.path, self.branch_name)
        self.ops.checkout(self.path, self.branch_name)

        parent = current if current != "HEAD" else None
        if parent:
            try:
                self.ops.set_parent_branch(self.path, self.branch_name, parent)
            except VcsCommandFailed as e:
                self.console.print(f"[yellow]Warning: could not record parent branch: {e.message}[/yellow]")

        for observer in self.observers:
            await observer.on_branch_created(self.branch_name, parent)

        # Staging happens after checkout so the changes land on the new branch.
        await self._commit(self.branch_name)

        return CommandResult(
            message=f"Created branch '{self.branch_name}' and committed changes",
            commit_hash=self.short_head(),
            branch_created=self.branch_name,
        )

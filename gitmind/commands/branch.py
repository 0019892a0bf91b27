"""Commands for managing local branches."""

from typing import List, Optional, Sequence

from rich.console import Console

from ..errors import BranchExists, BranchInUse, ProtectedBranch, VcsCommandFailed
from ..models import BranchContext, BranchType, detect_branch_type
from ..snapshot import BranchContextBuilder
from ..vcs.base import GitOperations
from .base import CommandResult, GitCommand


class DeleteBranchCommand(GitCommand):
    """Delete a local branch that is neither checked out nor protected.

    Attributes:
        branch (str): Branch to delete
        force (bool): Delete even when the branch is not fully merged
        protected_branches (List[str]): Configured protected branch names
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        branch: str,
        force: bool = False,
        protected_branches: Sequence[str] = (),
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.branch = branch
        self.force = force
        self.protected_branches = list(protected_branches)

    async def execute(self) -> CommandResult:
        """Delete the branch.

        Raises:
            BranchInUse: If the branch is currently checked out
            ProtectedBranch: If the branch is protected
            VcsCommandFailed: If git refuses, e.g. for an unmerged branch
        """
        if not self.branch:
            raise ValueError("branch name is required")
        if self.branch == self.ops.current_branch(self.path):
            raise BranchInUse(self.branch)
        if detect_branch_type(self.branch, self.protected_branches) == BranchType.PROTECTED:
            raise ProtectedBranch("delete", self.branch)

        self.ops.delete_branch(self.path, self.branch, force=self.force)
        return CommandResult(message=f"Deleted branch '{self.branch}'")


class RenameBranchCommand(GitCommand):
    """Rename a local branch; protected branches keep their names."""

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        old_name: str,
        new_name: str,
        protected_branches: Sequence[str] = (),
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.old_name = old_name
        self.new_name = new_name
        self.protected_branches = list(protected_branches)

    async def execute(self) -> CommandResult:
        if not self.old_name or not self.new_name:
            raise ValueError("both old and new branch names are required")
        if self.old_name == self.new_name:
            raise ValueError("new branch name must be different from old name")
        if detect_branch_type(self.old_name, self.protected_branches) == BranchType.PROTECTED:
            raise ProtectedBranch("rename", self.old_name)
        if self.new_name in self.ops.list_branches(self.path):
            raise BranchExists(self.new_name)

        self.ops.rename_branch(self.path, self.old_name, self.new_name)
        return CommandResult(message=f"Renamed branch '{self.old_name}' to '{self.new_name}'")


class SetUpstreamCommand(GitCommand):
    """Make a branch track a remote branch.

    Without an explicit upstream the branch tracks ``<remote>/<branch>`` on
    ``origin`` (or the first remote when there is no ``origin``).
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        branch: Optional[str] = None,
        upstream: Optional[str] = None,
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.branch = branch
        self.upstream = upstream

    async def execute(self) -> CommandResult:
        branch = self.branch or self.ops.current_branch(self.path)
        upstream = self.upstream
        if not upstream:
            remotes = self.ops.remote_names(self.path)
            if not remotes:
                raise VcsCommandFailed("no remote repository configured")
            remote = "origin" if "origin" in remotes else remotes[0]
            upstream = f"{remote}/{branch}"

        self.ops.set_upstream(self.path, branch, upstream)
        return CommandResult(message=f"Upstream set to '{upstream}' for branch '{branch}'")


def branch_overview(
    ops: GitOperations, path: str, protected_branches: Sequence[str] = ()
) -> List[BranchContext]:
    """Describe every local branch: current first, then protected, then the rest."""
    current = ops.current_branch(path)
    builder = BranchContextBuilder(ops)
    contexts = [builder.build(path, protected_branches, branch=name) for name in ops.list_branches(path)]

    def order(context: BranchContext):
        if context.name == current:
            return 0, context.name
        if context.is_protected:
            return 1, context.name
        return 2, context.name

    return sorted(contexts, key=order)

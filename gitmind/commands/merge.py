"""Commands for merging one branch into another."""

from typing import List, Optional, Tuple

from rich.console import Console

from ..errors import GitMindError, SelfMerge, VcsCommandFailed
from ..models import MergeStatus, MergeStrategy
from ..vcs.base import GitOperations
from ..vcs.parsing import parse_conflict_files
from .base import CommandResult, GitCommand


def default_merge_message(source: str, target: str) -> str:
    return f"Merge branch '{source}' into {target}"


def _validate_branches(source: str, target: str) -> None:
    if not source or not target:
        raise ValueError("source and target branches are required")
    if source == target:
        raise SelfMerge(source)


class MergeCommand(GitCommand):
    """Merge ``source`` into ``target``.

    The target is checked out first when it is not the current branch. A
    failed merge is aborted before the error is re-raised, so the working
    tree is never left mid-merge.

    Attributes:
        source (str): Branch whose commits are merged
        target (str): Branch receiving the merge
        strategy (MergeStrategy): How to combine the branches
        message (Optional[str]): Merge commit message, defaulted when missing
    """

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        source: str,
        target: str,
        strategy: MergeStrategy = MergeStrategy.REGULAR,
        message: Optional[str] = None,
        console: Optional[Console] = None,
    ):
        super().__init__(ops, path, console)
        self.source = source
        self.target = target
        self.strategy = MergeStrategy.REGULAR if strategy == MergeStrategy.ASK else strategy
        self.message = message

    def _message(self) -> str:
        if self.message:
            return self.message
        if self.strategy in (MergeStrategy.SQUASH, MergeStrategy.REGULAR):
            return default_merge_message(self.source, self.target)
        return ""

    async def _notify(self, success: bool) -> None:
        for observer in self.observers:
            await observer.on_merge_completed(success, self.source, self.target)

    async def execute(self) -> CommandResult:
        _validate_branches(self.source, self.target)

        if self.ops.current_branch(self.path) != self.target:
            self.ops.checkout(self.path, self.target)

        try:
            self.ops.merge(self.path, self.source, self.strategy.value, self._message())
        except GitMindError:
            try:
                self.ops.abort_merge(self.path, self.strategy.value)
            except VcsCommandFailed as abort_error:
                self.console.print(f"[yellow]Warning: could not abort merge: {abort_error.message}[/yellow]")
            await self._notify(False)
            raise

        await self._notify(True)
        return CommandResult(
            message=f"Merged '{self.source}' into '{self.target}'",
            commit_hash=self.short_head(),
            strategy=self.strategy,
        )


def preview_merge(ops: GitOperations, path: str, source: str, target: str) -> Tuple[bool, List[str]]:
    """Check whether ``source`` merges cleanly into ``target``.

    A trial merge is run on the target and always aborted; the originally
    checked-out branch is restored afterwards.

    Returns:
        ``(True, [])`` for a clean merge, ``(False, conflicting_paths)``
        otherwise.

    Raises:
        VcsCommandFailed: If the trial merge failed for a reason other than
            conflicts.
    """
    original = ops.current_branch(path)
    if original != target:
        ops.checkout(path, target)

    try:
        ok, output = ops.try_merge(path, source)
    finally:
        try:
            ops.abort_merge(path)
        finally:
            if original != target:
                ops.checkout(path, original)

    if ok:
        return True, []
    if "CONFLICT" in output:
        return False, parse_conflict_files(output)
    raise VcsCommandFailed(f"merge preview failed: {output}", stderr=output)


def merge_status(ops: GitOperations, path: str, source: str, target: str) -> MergeStatus:
    """Summarize how ``source`` relates to ``target`` without changing either."""
    _validate_branches(source, target)
    try:
        common_ancestor: Optional[str] = ops.merge_base(path, source, target) or None
    except VcsCommandFailed:
        common_ancestor = None
    ahead, behind = ops.divergence(path, source, target)
    _, conflicts = preview_merge(ops, path, source, target)
    return MergeStatus.derive(
        source,
        target,
        ahead,
        behind,
        common_ancestor=common_ancestor,
        conflicts=tuple(conflicts),
    )

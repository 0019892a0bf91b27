"""Core functionality for gitmind: analysis use cases and the committer."""
import asyncio
from typing import Awaitable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict
from rich.console import Console

from .commands import (
    CommandResult,
    CommitCommand,
    CreateBranchCommand,
    GitCommand,
    MergeCommand,
    PushCommand,
    preview_merge,
)
from .commit_message import CommitMessage
from .errors import BranchNotFound, NoChanges, OperationTimeout, SelfMerge, VcsCommandFailed
from .models import (
    ActionType,
    APIKey,
    BranchContext,
    Decision,
    MergeStrategy,
    RepositorySnapshot,
    detect_branch_type,
)
from .observers import GitOperationObserver
from .providers import LLMProvider
from .schemas import AnalysisRequest, MergeMessageRequest
from .snapshot import BranchContextBuilder, SnapshotBuilder, collect_new_file_blocks
from .vcs.base import CommitInfo, GitOperations

T = TypeVar("T")

ANALYSIS_TIMEOUT = 90.0
EXECUTION_TIMEOUT = 120.0
MERGE_OPPORTUNITY_MIN_COMMITS = 3
RECENT_LOG_SIZE = 5
COMMON_TARGET_BRANCHES = ("main", "master", "develop", "development")


async def _bounded(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        raise OperationTimeout(operation, timeout) from None


class CommitAnalysis(BaseModel):
    """Result of analysing the working tree."""

    model_config = ConfigDict(frozen=True)

    snapshot: RepositorySnapshot
    branch: BranchContext
    decision: Decision
    diff: str = ""
    tokens_used: int = 0
    model: str = ""


class MergeAnalysis(BaseModel):
    """Result of analysing a prospective merge."""

    model_config = ConfigDict(frozen=True)

    source_branch: str
    target_branch: str
    commits: Tuple[CommitInfo, ...] = ()
    can_merge: bool = True
    conflicts: Tuple[str, ...] = ()
    merge_message: CommitMessage
    suggested_strategy: MergeStrategy = MergeStrategy.REGULAR
    reasoning: str = ""
    tokens_used: int = 0
    model: str = ""

    @property
    def commit_count(self) -> int:
        return len(self.commits)


class CommitAnalyzer:
    """Analyzes pending changes and asks the provider how to commit them."""

    def __init__(
        self,
        ops: GitOperations,
        provider: LLMProvider,
        protected_branches: Sequence[str] = (),
        timeout: float = ANALYSIS_TIMEOUT,
    ):
        self.ops = ops
        self.provider = provider
        self.protected_branches = list(protected_branches)
        self.timeout = timeout
        self.snapshot_builder = SnapshotBuilder(ops)
        self.branch_builder = BranchContextBuilder(ops)

    def _merge_opportunity(self, path: str, branch: BranchContext) -> int:
        """Return the number of commits ready to merge into the parent, or 0."""
        if not branch.parent:
            return 0
        try:
            commits = self.ops.branch_commits(path, branch.name, branch.parent)
        except VcsCommandFailed:
            return 0
        return len(commits) if len(commits) >= MERGE_OPPORTUNITY_MIN_COMMITS else 0

    def _recent_log(self, path: str, branch: BranchContext) -> List[str]:
        commits: List[CommitInfo] = []
        if branch.parent:
            try:
                commits = self.ops.branch_commits(path, branch.name, branch.parent)[:RECENT_LOG_SIZE]
            except VcsCommandFailed:
                commits = []
        if not commits:
            try:
                commits = self.ops.log(path, RECENT_LOG_SIZE)
            except VcsCommandFailed:
                # A repository without commits has no history to show.
                commits = []
        return [commit.message for commit in commits]

    async def analyze(
        self,
        path: str,
        api_key: APIKey,
        user_prompt: str = "",
        use_conventional: bool = False,
    ) -> CommitAnalysis:
        """Collect repository state and request a decision.

        Raises:
            NotAVcsRepository: If ``path`` is not inside a git repository
            NoChanges: If there is nothing to commit and no merge opportunity
            OperationTimeout: If the provider does not answer in time
        """
        snapshot = self.snapshot_builder.build(path)
        branch = self.branch_builder.build(path, self.protected_branches)

        merge_commit_count = 0
        if not snapshot.has_changes:
            merge_commit_count = self._merge_opportunity(path, branch)
            if not merge_commit_count:
                raise NoChanges()

        diff = self.ops.diff(path, staged=True) or self.ops.diff(path, staged=False)
        file_blocks = []
        if not diff and snapshot.has_changes:
            file_blocks = collect_new_file_blocks(self.ops, path, snapshot)
            if not file_blocks:
                diff = f"New files to be added:\n{snapshot.change_summary}"

        request = AnalysisRequest(
            snapshot=snapshot,
            branch=branch,
            api_key=api_key,
            diff=diff,
            file_blocks=tuple(file_blocks),
            recent_log=tuple(self._recent_log(path, branch)),
            user_prompt=user_prompt,
            use_conventional=use_conventional,
            merge_opportunity=bool(merge_commit_count),
            merge_target_branch=branch.parent if merge_commit_count else None,
            merge_commit_count=merge_commit_count,
        )

        response = await _bounded("analysis", self.provider.analyze(request), self.timeout)
        return CommitAnalysis(
            snapshot=snapshot,
            branch=branch,
            decision=response.decision,
            diff=diff,
            tokens_used=response.tokens_used,
            model=response.model,
        )


class MergeAnalyzer:
    """Resolves a merge target, previews conflicts and proposes a merge message."""

    def __init__(
        self,
        ops: GitOperations,
        provider: LLMProvider,
        protected_branches: Sequence[str] = (),
        timeout: float = ANALYSIS_TIMEOUT,
    ):
        self.ops = ops
        self.provider = provider
        self.protected_branches = list(protected_branches)
        self.timeout = timeout
        self.branch_builder = BranchContextBuilder(ops)

    def _source_context(self, path: str, source: str) -> BranchContext:
        if source == self.ops.current_branch(path):
            return self.branch_builder.build(path, self.protected_branches)
        return BranchContext(
            name=source,
            branch_type=detect_branch_type(source, self.protected_branches),
            parent=self.ops.parent_branch(path, source),
        )

    def resolve_target(
        self, source: BranchContext, branches: Sequence[str], target: Optional[str] = None
    ) -> str:
        """Pick the branch to merge into.

        An explicit target wins. Otherwise the recorded parent is used when it
        exists, then the first well-known long-lived branch, then the branch's
        suggested target.

        Raises:
            BranchNotFound: If the resolved target does not exist
            SelfMerge: If the target is the source branch itself
        """
        if not target:
            if source.parent and source.parent in branches:
                target = source.parent
            else:
                target = next(
                    (name for name in COMMON_TARGET_BRANCHES if name != source.name and name in branches),
                    source.suggested_merge_target,
                )

        if target not in branches:
            raise BranchNotFound(target, [name for name in branches if name != source.name])
        if target == source.name:
            raise SelfMerge(target)
        return target

    async def analyze(
        self,
        path: str,
        api_key: APIKey,
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> MergeAnalysis:
        source = source or self.ops.current_branch(path)
        context = self._source_context(path, source)
        target = self.resolve_target(context, self.ops.list_branches(path), target)

        commits = self.ops.branch_commits(path, source, target)
        if not commits:
            raise NoChanges(f"no commits to merge (branch '{source}' is up to date with '{target}')")

        can_merge, conflicts = preview_merge(self.ops, path, source, target)

        request = MergeMessageRequest(
            source_branch=source,
            target_branch=target,
            commits=tuple(commit.message for commit in commits),
            api_key=api_key,
        )
        response = await _bounded(
            "merge analysis", self.provider.generate_merge_message(request), self.timeout
        )
        return MergeAnalysis(
            source_branch=source,
            target_branch=target,
            commits=tuple(commits),
            can_merge=can_merge,
            conflicts=tuple(conflicts),
            merge_message=response.merge_message,
            suggested_strategy=response.suggested_strategy,
            reasoning=response.reasoning,
            tokens_used=response.tokens_used,
            model=response.model,
        )


class GitCommitter:
    """Handles git operations using the Command Pattern."""

    def __init__(
        self,
        ops: GitOperations,
        path: str,
        console: Optional[Console] = None,
        timeout: float = EXECUTION_TIMEOUT,
    ):
        self.ops = ops
        self.path = path
        self.console = console or Console()
        self.timeout = timeout
        self.observers: List[GitOperationObserver] = []

    def add_observer(self, observer: GitOperationObserver) -> None:
        """Add an observer to be notified of git operations."""
        self.observers.append(observer)

    def remove_observer(self, observer: GitOperationObserver) -> None:
        """Remove an observer from the notification list."""
        self.observers.remove(observer)

    async def execute_command(self, command: GitCommand) -> CommandResult:
        """Execute a git command with this committer's observers attached."""
        for observer in self.observers:
            command.add_observer(observer)
        return await _bounded("execution", command.execute(), self.timeout)

    async def commit(self, message: CommitMessage, stage_all: bool = True) -> CommandResult:
        command = CommitCommand(self.ops, self.path, message, stage_all, self.console)
        return await self.execute_command(command)

    async def create_branch_and_commit(
        self, message: CommitMessage, branch_name: str, stage_all: bool = True
    ) -> CommandResult:
        command = CreateBranchCommand(self.ops, self.path, message, branch_name, stage_all, self.console)
        return await self.execute_command(command)

    async def merge(
        self,
        source: str,
        target: str,
        strategy: MergeStrategy = MergeStrategy.REGULAR,
        message: Optional[str] = None,
    ) -> CommandResult:
        command = MergeCommand(self.ops, self.path, source, target, strategy, message, self.console)
        return await self.execute_command(command)

    async def push_changes(self, branch: Optional[str] = None) -> CommandResult:
        """Push commits to the remote repository."""
        command = PushCommand(self.ops, self.path, branch, console=self.console)
        return await self.execute_command(command)

    async def execute_decision(
        self,
        decision: Decision,
        stage_all: bool = True,
        source_branch: Optional[str] = None,
        default_strategy: MergeStrategy = MergeStrategy.REGULAR,
    ) -> CommandResult:
        """Run the operations a decision calls for.

        ``default_strategy`` is used for merges the decision gives no strategy
        for.

        Raises:
            ValueError: If the decision is missing data its action needs, or
                its action is not one that can be executed directly
        """
        decision.validate_action()

        if decision.action == ActionType.COMMIT_DIRECT:
            return await self.commit(decision.suggested_message, stage_all)

        if decision.action == ActionType.CREATE_BRANCH:
            if decision.suggested_message is None:
                raise ValueError("commit message required for create-branch action")
            return await self.create_branch_and_commit(
                decision.suggested_message, decision.branch_name, stage_all
            )

        if decision.action == ActionType.MERGE:
            source = source_branch or self.ops.current_branch(self.path)
            message = decision.suggested_message.full_message if decision.suggested_message else None
            return await self.merge(
                source,
                decision.target_branch,
                decision.merge_strategy or default_strategy,
                message,
            )

        raise ValueError(f"action '{decision.action.value}' cannot be executed directly")

"""Builders that turn repository state into immutable snapshots."""
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import NotAVcsRepository, VcsCommandFailed
from .models import (
    BranchContext,
    ChangeStatus,
    FileBlockKind,
    FileChange,
    FileContentBlock,
    RepositorySnapshot,
    detect_branch_type,
)
from .vcs.base import GitOperations
from .vcs.parsing import count_lines, is_binary, parse_numstat, parse_status

DETACHED = "detached"
KNOWN_HOST = "github.com"

MAX_NEW_FILE_SIZE = 100 * 1024
MAX_NEW_FILE_LINES = 100
NEW_FILE_BINARY_SNIFF = 8192


def is_github_remote(url: Optional[str]) -> bool:
    if not url:
        return False
    return KNOWN_HOST in url.lower()


def preferred_remote(remotes: Sequence[str]) -> Optional[str]:
    """Prefer ``origin``; otherwise the first configured remote."""
    if not remotes:
        return None
    return "origin" if "origin" in remotes else remotes[0]


class SnapshotBuilder:
    """Collects a :class:`RepositorySnapshot` through a :class:`GitOperations` port."""

    def __init__(self, ops: GitOperations):
        self.ops = ops

    def build(self, path: str) -> RepositorySnapshot:
        if not self.ops.is_repo(path):
            raise NotAVcsRepository(path)

        branch = self.ops.current_branch(path) or DETACHED
        if branch == "HEAD":
            branch = DETACHED

        remotes = self.ops.remote_names(path)
        remote_name = preferred_remote(remotes)
        remote_url = None
        ahead = behind = 0
        if remote_name:
            try:
                remote_url = self.ops.remote_url(path, remote_name)
            except VcsCommandFailed:
                remote_url = None
            ahead, behind = self._sync_status(path, branch)

        changes = self._changes(path)

        return RepositorySnapshot(
            path=path,
            current_branch=branch,
            has_remote=bool(remotes),
            remote_name=remote_name,
            remote_url=remote_url,
            is_github_remote=is_github_remote(remote_url),
            commits_ahead=ahead,
            commits_behind=behind,
            changes=tuple(changes),
        )

    def _sync_status(self, path: str, branch: str) -> Tuple[int, int]:
        if branch == DETACHED:
            return 0, 0
        try:
            return self.ops.remote_sync_status(path, branch)
        except (VcsCommandFailed, ValueError):
            return 0, 0

    def _numstat(self, path: str) -> Dict[str, Tuple[int, int]]:
        stats = {}
        for staged in (True, False):
            try:
                stats.update(parse_numstat(self.ops.diff_numstat(path, staged)))
            except VcsCommandFailed:
                continue
        return stats

    def _changes(self, path: str) -> List[FileChange]:
        changes = parse_status(self.ops.status(path))
        if not changes:
            return []

        stats = self._numstat(path)
        populated = []
        for change in changes:
            if change.path in stats:
                added, deleted = stats[change.path]
                change = change.model_copy(update={"additions": added, "deletions": deleted})
            elif change.status == ChangeStatus.UNTRACKED:
                change = change.model_copy(update={"additions": self._line_count(path, change.path)})
            populated.append(change)
        return populated

    def _line_count(self, path: str, relpath: str) -> int:
        try:
            if self.ops.is_directory(path, relpath):
                return 0
            return count_lines(self.ops.read_file(path, relpath))
        except OSError:
            return 0


class BranchContextBuilder:
    """Resolves type, parent, upstream and divergence for a branch."""

    def __init__(self, ops: GitOperations):
        self.ops = ops

    def build(
        self, path: str, protected_branches: Sequence[str] = (), branch: Optional[str] = None
    ) -> BranchContext:
        """Build the context of ``branch``, the current branch when omitted."""
        name = branch or self.ops.current_branch(path) or DETACHED
        if name == "HEAD":
            name = DETACHED

        parent = self.ops.parent_branch(path, name)
        upstream = self.ops.upstream(path, name)

        ahead_by = behind_by = 0
        if upstream:
            try:
                ahead_by, behind_by = self.ops.divergence(path, name, upstream)
            except (VcsCommandFailed, ValueError):
                ahead_by = behind_by = 0

        commit_count = 0
        if parent:
            try:
                commit_count = len(self.ops.branch_commits(path, name, parent))
            except VcsCommandFailed:
                commit_count = 0

        return BranchContext(
            name=name,
            branch_type=detect_branch_type(name, protected_branches),
            parent=parent,
            upstream=upstream,
            ahead_by=ahead_by,
            behind_by=behind_by,
            commit_count=commit_count,
        )


def _content_block(ops: GitOperations, path: str, relpath: str) -> FileContentBlock:
    try:
        if ops.is_directory(path, relpath):
            return FileContentBlock(path=relpath, kind=FileBlockKind.DIRECTORY)
        size = ops.file_size(path, relpath)
        if size > MAX_NEW_FILE_SIZE:
            return FileContentBlock(path=relpath, kind=FileBlockKind.LARGE, size=size)
        content = ops.read_file(path, relpath)
    except OSError:
        return FileContentBlock(path=relpath, kind=FileBlockKind.UNREADABLE)

    if is_binary(content, NEW_FILE_BINARY_SNIFF):
        return FileContentBlock(path=relpath, kind=FileBlockKind.BINARY, size=size)

    lines = content.decode("utf-8", errors="replace").split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return FileContentBlock(
        path=relpath,
        kind=FileBlockKind.TEXT,
        lines=tuple(lines[:MAX_NEW_FILE_LINES]),
        total_lines=len(lines),
        size=size,
    )


def collect_new_file_blocks(
    ops: GitOperations, path: str, snapshot: RepositorySnapshot
) -> List[FileContentBlock]:
    """Read untracked and added files without staging them."""
    return [
        _content_block(ops, path, change.path)
        for change in snapshot.changes
        if change.status in (ChangeStatus.UNTRACKED, ChangeStatus.ADDED)
    ]

import hashlib
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from git import Repo

from gitmind.errors import BranchExists, NothingToCommit, VcsCommandFailed
from gitmind.models import APIKey, APITier
from gitmind.vcs.base import CommitInfo, GitOperations

pytest_plugins = ('pytest_asyncio',)


def _configure(repo: Repo) -> None:
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")


def commit_file(repo: Repo, name: str, content: str, message: str) -> None:
    """Write a file and commit it through git."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.git.add(name)
    repo.git.commit("-m", message)


@pytest.fixture
def empty_git_repo(tmp_path):
    """A git repository without any commits."""
    repo = Repo.init(tmp_path, initial_branch="main")
    _configure(repo)
    return tmp_path


@pytest.fixture
def git_repo(tmp_path):
    """A git repository on ``main`` with one commit."""
    repo = Repo.init(tmp_path, initial_branch="main")
    _configure(repo)
    commit_file(repo, "test.txt", "Initial content\n", "Initial commit")
    repo.git.checkout("-B", "main")
    return tmp_path


@pytest.fixture
def feature_repo(git_repo):
    """``main`` plus ``feature/login`` with two commits and a recorded parent."""
    repo = Repo(git_repo)
    repo.git.checkout("-b", "feature/login")
    repo.git.config("branch.feature/login.parent", "main")
    commit_file(repo, "login.py", "def login():\n    pass\n", "Add login stub")
    commit_file(repo, "login.py", "def login():\n    return True\n", "Implement login")
    return git_repo


@pytest.fixture
def free_key():
    return APIKey(key="csk-test-1234567890", provider="cerebras", tier=APITier.FREE)


@pytest.fixture
def pro_key():
    return APIKey(key="csk-test-1234567890", provider="cerebras", tier=APITier.PRO)


class FakeGitOperations(GitOperations):
    """In-memory :class:`GitOperations` that records every call."""

    def __init__(
        self,
        branch: str = "main",
        status: str = "",
        staged_diff: str = "",
        unstaged_diff: str = "",
        numstat_staged: str = "",
        numstat_unstaged: str = "",
        files: Optional[Dict[str, bytes]] = None,
        commits: Optional[List[CommitInfo]] = None,
        branches: Optional[List[str]] = None,
        parents: Optional[Dict[str, str]] = None,
        unique_commits: Optional[Dict[Tuple[str, str], List[CommitInfo]]] = None,
        remotes: Optional[Dict[str, str]] = None,
        sync_status: Tuple[int, int] = (0, 0),
        try_merge_result: Tuple[bool, str] = (True, ""),
        merge_error: Optional[Exception] = None,
        nothing_to_commit: bool = False,
    ):
        self.branch = branch
        self.status_output = status
        self.staged_diff = staged_diff
        self.unstaged_diff = unstaged_diff
        self.numstat = {True: numstat_staged, False: numstat_unstaged}
        self.files = files or {}
        self.commits = list(commits or [])
        self.branches = list(branches or [branch])
        self.parents = dict(parents or {})
        self.upstreams: Dict[str, str] = {}
        self.unique_commits = dict(unique_commits or {})
        self.remotes = dict(remotes or {})
        self.sync_status = sync_status
        self.try_merge_result = try_merge_result
        self.merge_error = merge_error
        self.nothing_to_commit = nothing_to_commit
        self.calls: List[Tuple] = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)

    def called(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def is_repo(self, path: str) -> bool:
        return True

    def current_branch(self, path: str) -> str:
        return self.branch

    def remote_names(self, path: str) -> List[str]:
        return list(self.remotes)

    def remote_url(self, path: str, name: str) -> str:
        return self.remotes[name]

    def remote_sync_status(self, path: str, branch: str) -> Tuple[int, int]:
        return self.sync_status

    def status(self, path: str) -> str:
        return self.status_output

    def diff(self, path: str, staged: bool) -> str:
        return self.staged_diff if staged else self.unstaged_diff

    def diff_numstat(self, path: str, staged: bool) -> str:
        return self.numstat[staged]

    def read_file(self, path: str, relpath: str) -> bytes:
        if relpath not in self.files:
            raise FileNotFoundError(relpath)
        return self.files[relpath]

    def file_size(self, path: str, relpath: str) -> int:
        return len(self.read_file(path, relpath))

    def is_directory(self, path: str, relpath: str) -> bool:
        return relpath.endswith("/")

    def log(self, path: str, count: int) -> List[CommitInfo]:
        return self.commits[:count]

    def add(self, path: str, files: Optional[Sequence[str]] = None) -> None:
        self._record("add", files)

    def commit(self, path: str, message: str) -> None:
        self._record("commit", message)
        if self.nothing_to_commit:
            raise NothingToCommit("nothing to commit, working tree clean")
        digest = hashlib.sha1(f"{len(self.commits)}{message}".encode()).hexdigest()
        subject = message.split("\n")[0]
        self.commits.insert(0, CommitInfo(hash=digest, author="Test", date="2024-01-01", message=subject))

    def create_branch(self, path: str, name: str) -> None:
        self._record("create_branch", name)
        if name in self.branches:
            raise BranchExists(name)
        self.branches.append(name)

    def checkout(self, path: str, branch: str) -> None:
        self._record("checkout", branch)
        self.branch = branch

    def delete_branch(self, path: str, name: str, force: bool = False) -> None:
        self._record("delete_branch", name, force)
        self.branches.remove(name)

    def rename_branch(self, path: str, old_name: str, new_name: str) -> None:
        self._record("rename_branch", old_name, new_name)
        self.branches[self.branches.index(old_name)] = new_name

    def list_branches(self, path: str) -> List[str]:
        return list(self.branches)

    def push(self, path: str, branch: str, force: bool = False) -> None:
        self._record("push", branch, force)

    def pull(self, path: str) -> None:
        self._record("pull")

    def upstream(self, path: str, branch: str) -> Optional[str]:
        return self.upstreams.get(branch)

    def set_upstream(self, path: str, branch: str, upstream: str) -> None:
        self._record("set_upstream", branch, upstream)
        self.upstreams[branch] = upstream

    def divergence(self, path: str, branch: str, other: str) -> Tuple[int, int]:
        ahead = len(self.unique_commits.get((branch, other), []))
        behind = len(self.unique_commits.get((other, branch), []))
        return ahead, behind

    def merge_base(self, path: str, branch1: str, branch2: str) -> str:
        return "base123"

    def branch_commits(self, path: str, branch: str, exclude: str) -> List[CommitInfo]:
        return list(self.unique_commits.get((branch, exclude), []))

    def parent_branch(self, path: str, branch: str) -> Optional[str]:
        return self.parents.get(branch)

    def set_parent_branch(self, path: str, branch: str, parent: str) -> None:
        self._record("set_parent_branch", branch, parent)
        self.parents[branch] = parent

    def merge(self, path: str, source: str, strategy: str, message: str) -> None:
        self._record("merge", source, strategy, message)
        if self.merge_error is not None:
            raise self.merge_error
        self.commit(path, message or f"Merge branch '{source}'")

    def try_merge(self, path: str, source: str) -> Tuple[bool, str]:
        self._record("try_merge", source, self.branch)
        return self.try_merge_result

    def abort_merge(self, path: str, strategy: Optional[str] = None) -> None:
        self._record("abort_merge", strategy)


def make_commits(*subjects: str) -> List[CommitInfo]:
    return [
        CommitInfo(hash=hashlib.sha1(s.encode()).hexdigest(), author="Test", date="2024-01-01", message=s)
        for s in subjects
    ]


@pytest.fixture
def fake_ops():
    return FakeGitOperations()


class EmptyLogOperations(FakeGitOperations):
    """A repository whose ``git log`` fails because HEAD does not exist yet."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.fail_log = True

    def log(self, path: str, count: int) -> List[CommitInfo]:
        if self.fail_log and not self.commits:
            raise VcsCommandFailed("git log failed: fatal: your current branch 'main' does not have any commits yet")
        return super().log(path, count)

"""Abstract version-control operations.

Core code depends only on :class:`GitOperations`; the GitPython adapter in
:mod:`gitmind.vcs.repo` is injected at the command line entry point and an
in-memory fake is used by the tests.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict


class CommitInfo(BaseModel):
    """A single log entry."""

    model_config = ConfigDict(frozen=True)

    hash: str
    author: str
    date: str
    message: str


class GitOperations(ABC):
    """Capability set the core needs from a version-control system.

    Every method takes the repository path first. Failures raise
    :class:`gitmind.errors.VcsCommandFailed` or one of its subclasses.
    """

    @abstractmethod
    def is_repo(self, path: str) -> bool:
        pass

    @abstractmethod
    def current_branch(self, path: str) -> str:
        """Return the checked-out branch name, or ``"HEAD"`` when detached."""
        pass

    @abstractmethod
    def remote_names(self, path: str) -> List[str]:
        pass

    @abstractmethod
    def remote_url(self, path: str, name: str) -> str:
        pass

    @abstractmethod
    def remote_sync_status(self, path: str, branch: str) -> Tuple[int, int]:
        """Return ``(ahead, behind)`` against the branch's remote tracking ref."""
        pass

    @abstractmethod
    def status(self, path: str) -> str:
        """Return raw ``git status --porcelain`` output."""
        pass

    @abstractmethod
    def diff(self, path: str, staged: bool) -> str:
        pass

    @abstractmethod
    def diff_numstat(self, path: str, staged: bool) -> str:
        pass

    @abstractmethod
    def read_file(self, path: str, relpath: str) -> bytes:
        pass

    @abstractmethod
    def file_size(self, path: str, relpath: str) -> int:
        pass

    @abstractmethod
    def is_directory(self, path: str, relpath: str) -> bool:
        pass

    @abstractmethod
    def log(self, path: str, count: int) -> List[CommitInfo]:
        pass

    @abstractmethod
    def add(self, path: str, files: Optional[Sequence[str]] = None) -> None:
        """Stage ``files``, or everything when ``files`` is None."""
        pass

    @abstractmethod
    def commit(self, path: str, message: str) -> None:
        pass

    @abstractmethod
    def create_branch(self, path: str, name: str) -> None:
        pass

    @abstractmethod
    def checkout(self, path: str, branch: str) -> None:
        pass

    @abstractmethod
    def delete_branch(self, path: str, name: str, force: bool = False) -> None:
        pass

    @abstractmethod
    def rename_branch(self, path: str, old_name: str, new_name: str) -> None:
        pass

    @abstractmethod
    def list_branches(self, path: str) -> List[str]:
        pass

    @abstractmethod
    def push(self, path: str, branch: str, force: bool = False) -> None:
        pass

    @abstractmethod
    def pull(self, path: str) -> None:
        pass

    @abstractmethod
    def upstream(self, path: str, branch: str) -> Optional[str]:
        """Return the upstream ref of ``branch`` or None when it has none."""
        pass

    @abstractmethod
    def set_upstream(self, path: str, branch: str, upstream: str) -> None:
        """Make ``branch`` track ``upstream`` (for example ``origin/feature/x``)."""
        pass

    @abstractmethod
    def divergence(self, path: str, branch: str, other: str) -> Tuple[int, int]:
        """Return ``(ahead, behind)`` of ``branch`` relative to ``other``."""
        pass

    @abstractmethod
    def merge_base(self, path: str, branch1: str, branch2: str) -> str:
        pass

    @abstractmethod
    def branch_commits(self, path: str, branch: str, exclude: str) -> List[CommitInfo]:
        """Return commits reachable from ``branch`` but not from ``exclude``."""
        pass

    @abstractmethod
    def parent_branch(self, path: str, branch: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_parent_branch(self, path: str, branch: str, parent: str) -> None:
        pass

    @abstractmethod
    def merge(self, path: str, source: str, strategy: str, message: str) -> None:
        pass

    @abstractmethod
    def try_merge(self, path: str, source: str) -> Tuple[bool, str]:
        """Attempt a ``--no-commit --no-ff`` merge and return ``(ok, output)``.

        The caller is responsible for aborting the trial merge afterwards.
        """
        pass

    @abstractmethod
    def abort_merge(self, path: str, strategy: Optional[str] = None) -> None:
        """Abandon a failed or trial merge and restore a clean working tree.

        ``strategy`` is the strategy the failed operation used; a rebase is
        abandoned with ``rebase --abort`` rather than ``merge --abort``.
        """
        pass

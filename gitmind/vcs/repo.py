"""GitPython implementation of :class:`GitOperations`."""
import os
from typing import List, Optional, Sequence, Tuple

from git import Repo
from git.exc import GitCommandNotFound, InvalidGitRepositoryError, NoSuchPathError

from ..errors import (
    BranchExists,
    MergeConflict,
    NotAVcsRepository,
    NothingToCommit,
    OperationTimeout,
    VcsCommandFailed,
)
from .base import CommitInfo, GitOperations
from .parsing import LOG_FORMAT, parse_conflict_files, parse_divergence, parse_log

DEFAULT_COMMAND_TIMEOUT = 60.0

# GitPython reports a killed process through stderr.
_TIMEOUT_MARKER = "did not complete in"


class GitRepoOperations(GitOperations):
    """Runs git through GitPython's ``Repo.git`` command wrapper.

    Every call is bounded by ``kill_after_timeout``. Failures raise
    :class:`VcsCommandFailed` carrying git's stderr; a few well-known
    failures are mapped to more specific errors.
    """

    def __init__(self, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def _repo(self, path: str) -> Repo:
        try:
            return Repo(path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise NotAVcsRepository(path) from None

    def _execute(self, path: str, command: str, *args: str) -> Tuple[int, str, str]:
        git = self._repo(path).git
        try:
            status, stdout, stderr = getattr(git, command.replace("-", "_"))(
                *args,
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=self.timeout,
            )
        except GitCommandNotFound as e:
            raise VcsCommandFailed(f"git executable not found: {e}") from e
        if status != 0 and _TIMEOUT_MARKER in stderr:
            raise OperationTimeout(f"git {command}", self.timeout)
        return status, stdout, stderr

    def _run(self, path: str, command: str, *args: str) -> str:
        status, stdout, stderr = self._execute(path, command, *args)
        if status != 0:
            raise VcsCommandFailed(
                f"git {command} failed: {(stderr or stdout).strip()}", stderr=stderr
            )
        return stdout

    def is_repo(self, path: str) -> bool:
        try:
            Repo(path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            return False
        return True

    def toplevel(self, path: str) -> str:
        """Return the root of the working tree containing ``path``."""
        return self._repo(path).working_tree_dir

    def current_branch(self, path: str) -> str:
        branch = self._run(path, "branch", "--show-current").strip()
        return branch or "HEAD"

    def remote_names(self, path: str) -> List[str]:
        output = self._run(path, "remote")
        return [name.strip() for name in output.split("\n") if name.strip()]

    def remote_url(self, path: str, name: str) -> str:
        return self._run(path, "remote", "get-url", name).strip()

    def remote_sync_status(self, path: str, branch: str) -> Tuple[int, int]:
        remote_branch = self.upstream(path, branch)
        if remote_branch is None:
            remotes = self.remote_names(path)
            if not remotes:
                return 0, 0
            remote = "origin" if "origin" in remotes else remotes[0]
            remote_branch = f"{remote}/{branch}"
            status, _, _ = self._execute(path, "rev-parse", "--verify", remote_branch)
            if status != 0:
                # Nothing pushed yet: every local commit is ahead.
                count = self._run(path, "rev-list", "--count", branch).strip()
                return int(count or 0), 0
        output = self._run(path, "rev-list", "--left-right", "--count", f"{branch}...{remote_branch}")
        return parse_divergence(output)

    def status(self, path: str) -> str:
        return self._run(path, "status", "--porcelain")

    def diff(self, path: str, staged: bool) -> str:
        args = ["--cached"] if staged else []
        return self._run(path, "diff", *args)

    def diff_numstat(self, path: str, staged: bool) -> str:
        args = ["--numstat"] + (["--cached"] if staged else [])
        return self._run(path, "diff", *args)

    def _full_path(self, path: str, relpath: str) -> str:
        return os.path.join(path, relpath)

    def read_file(self, path: str, relpath: str) -> bytes:
        with open(self._full_path(path, relpath), "rb") as f:
            return f.read()

    def file_size(self, path: str, relpath: str) -> int:
        return os.path.getsize(self._full_path(path, relpath))

    def is_directory(self, path: str, relpath: str) -> bool:
        return os.path.isdir(self._full_path(path, relpath))

    def log(self, path: str, count: int) -> List[CommitInfo]:
        if count <= 0:
            count = 10
        return parse_log(self._run(path, "log", f"-{count}", LOG_FORMAT))

    def add(self, path: str, files: Optional[Sequence[str]] = None) -> None:
        if files:
            self._run(path, "add", "--", *files)
        else:
            self._run(path, "add", "-A")

    def commit(self, path: str, message: str) -> None:
        if not message:
            raise ValueError("commit message cannot be empty")
        status, stdout, stderr = self._execute(path, "commit", "-m", message)
        if status != 0:
            if "nothing to commit" in stdout or "nothing to commit" in stderr:
                raise NothingToCommit(stderr)
            raise VcsCommandFailed(f"failed to commit: {(stderr or stdout).strip()}", stderr=stderr)

    def create_branch(self, path: str, name: str) -> None:
        if not name:
            raise ValueError("branch name cannot be empty")
        status, stdout, stderr = self._execute(path, "branch", name)
        if status != 0:
            if "already exists" in stderr:
                raise BranchExists(name, stderr)
            raise VcsCommandFailed(f"failed to create branch: {stderr.strip()}", stderr=stderr)

    def checkout(self, path: str, branch: str) -> None:
        if not branch:
            raise ValueError("branch name cannot be empty")
        self._run(path, "checkout", branch)

    def delete_branch(self, path: str, name: str, force: bool = False) -> None:
        self._run(path, "branch", "-D" if force else "-d", name)

    def rename_branch(self, path: str, old_name: str, new_name: str) -> None:
        self._run(path, "branch", "-m", old_name, new_name)

    def list_branches(self, path: str) -> List[str]:
        output = self._run(path, "branch", "--list")
        branches = []
        for line in output.split("\n"):
            line = line.strip()
            if line.startswith("* "):
                line = line[2:]
            if line:
                branches.append(line)
        return branches

    def push(self, path: str, branch: str, force: bool = False) -> None:
        if not branch:
            branch = self.current_branch(path)
        args = []
        if self.upstream(path, branch) is None:
            args.append("-u")
        if force:
            args.append("--force")
        self._run(path, "push", *args, "origin", branch)

    def pull(self, path: str) -> None:
        self._run(path, "pull")

    def upstream(self, path: str, branch: str) -> Optional[str]:
        status, stdout, _ = self._execute(path, "rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        if status != 0:
            return None
        return stdout.strip() or None

    def set_upstream(self, path: str, branch: str, upstream: str) -> None:
        if not branch or not upstream:
            raise ValueError("branch and upstream names cannot be empty")
        self._run(path, "branch", f"--set-upstream-to={upstream}", branch)

    def divergence(self, path: str, branch: str, other: str) -> Tuple[int, int]:
        output = self._run(path, "rev-list", "--left-right", "--count", f"{other}...{branch}")
        behind, ahead = parse_divergence(output)
        return ahead, behind

    def merge_base(self, path: str, branch1: str, branch2: str) -> str:
        return self._run(path, "merge-base", branch1, branch2).strip()

    def branch_commits(self, path: str, branch: str, exclude: str) -> List[CommitInfo]:
        status, stdout, stderr = self._execute(path, "log", f"{exclude}..{branch}", LOG_FORMAT)
        if status != 0:
            # Unrelated histories or a missing ref mean no unique commits.
            if "Invalid symmetric difference expression" in stderr or "unknown revision" in stderr:
                return []
            raise VcsCommandFailed(f"failed to get branch commits: {stderr.strip()}", stderr=stderr)
        return parse_log(stdout)

    def parent_branch(self, path: str, branch: str) -> Optional[str]:
        status, stdout, _ = self._execute(path, "config", "--get", f"branch.{branch}.parent")
        if status != 0:
            return None
        return stdout.strip() or None

    def set_parent_branch(self, path: str, branch: str, parent: str) -> None:
        if not branch or not parent:
            raise ValueError("branch and parent names cannot be empty")
        self._run(path, "config", f"branch.{branch}.parent", parent)

    def merge(self, path: str, source: str, strategy: str, message: str) -> None:
        if not source:
            raise ValueError("source branch cannot be empty")

        if strategy == "rebase":
            status, stdout, stderr = self._execute(path, "rebase", source)
            if status != 0:
                raise self._merge_error("rebase", stdout, stderr)
            return

        args = []
        if strategy == "squash":
            args.append("--squash")
        elif strategy == "fast-forward":
            args.append("--ff-only")
        elif strategy == "regular":
            args.append("--no-ff")
        if message and strategy != "squash":
            args.extend(["-m", message])
        args.append(source)

        status, stdout, stderr = self._execute(path, "merge", *args)
        if status != 0:
            raise self._merge_error("merge", stdout, stderr)

        if strategy == "squash":
            self.commit(path, message or f"Merge branch '{source}' (squashed)")

    def _merge_error(self, operation: str, stdout: str, stderr: str) -> VcsCommandFailed:
        output = f"{stdout}\n{stderr}".strip()
        if "CONFLICT" in output:
            return MergeConflict(output, parse_conflict_files(output))
        return VcsCommandFailed(f"{operation} failed: {output}", stderr=stderr)

    def try_merge(self, path: str, source: str) -> Tuple[bool, str]:
        status, stdout, stderr = self._execute(path, "merge", "--no-commit", "--no-ff", source)
        return status == 0, f"{stdout}\n{stderr}".strip()

    def abort_merge(self, path: str, strategy: Optional[str] = None) -> None:
        if strategy == "rebase":
            status, _, stderr = self._execute(path, "rebase", "--abort")
            if status != 0 and "no rebase in progress" not in stderr.lower():
                raise VcsCommandFailed(f"failed to abort rebase: {stderr.strip()}", stderr=stderr)
            return

        status, _, stderr = self._execute(path, "merge", "--abort")
        if status == 0:
            return
        if "no merge" not in stderr.lower():
            raise VcsCommandFailed(f"failed to abort merge: {stderr.strip()}", stderr=stderr)

        # A conflicted squash merge leaves unmerged paths but no MERGE_HEAD.
        if self._run(path, "diff", "--name-only", "--diff-filter=U").strip():
            self._run(path, "reset", "--merge")

"""Error types for gitmind.

Every error carries an explicit ``kind`` so callers can branch on the
category of failure instead of matching message text.
"""
from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    INPUT = "input"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    VALIDATION = "validation"
    VCS = "vcs"
    FATAL = "fatal"


class GitMindError(Exception):
    """Base class for all gitmind errors."""

    kind = ErrorKind.FATAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Input / state errors

class NotAVcsRepository(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, path: str):
        super().__init__(f"not a git repository: {path}")
        self.path = path


class NoChanges(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, message: str = "no changes to commit"):
        super().__init__(message)


class SelfMerge(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, branch: str):
        super().__init__(f"cannot merge branch '{branch}' into itself")
        self.branch = branch


class ProtectedBranch(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, operation: str, branch: str):
        super().__init__(f"cannot {operation} protected branch '{branch}'")
        self.operation = operation
        self.branch = branch


class BranchInUse(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, branch: str):
        super().__init__(f"cannot delete currently checked out branch '{branch}'")
        self.branch = branch


class BranchNotFound(GitMindError):
    """A merge target that does not exist locally."""

    kind = ErrorKind.INPUT

    def __init__(self, branch: str, available: Optional[List[str]] = None):
        self.branch = branch
        self.available = available or []
        if not self.available:
            message = "no other branches available to merge into"
        else:
            message = (
                f"target branch '{branch}' does not exist. "
                f"Available branches: {', '.join(self.available)}. Use -t flag to specify target"
            )
        super().__init__(message)


# VCS execution errors

class VcsCommandFailed(GitMindError):
    """A git command exited with an error."""

    kind = ErrorKind.VCS

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class NothingToCommit(VcsCommandFailed):
    def __init__(self, stderr: str = ""):
        super().__init__("no changes to commit", stderr)


class BranchExists(VcsCommandFailed):
    def __init__(self, branch: str, stderr: str = ""):
        super().__init__(f"branch '{branch}' already exists", stderr)
        self.branch = branch


class MergeConflict(VcsCommandFailed):
    def __init__(self, stderr: str, conflicts: Optional[List[str]] = None):
        super().__init__(f"merge conflict: {stderr}", stderr)
        self.conflicts = conflicts or []


# LLM errors

class TransientError(GitMindError):
    """A transport-level failure that is worth retrying."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitMindError):
    """The provider refused the request because of rate limiting."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(GitMindError):
    """A non-retryable API error (bad key, bad request, ...)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisFailed(GitMindError):
    def __init__(self, attempts: int, cause: Exception):
        super().__init__(f"AI analysis failed after {attempts} attempts: {cause}")
        self.attempts = attempts
        self.cause = cause


class ResponseValidationError(GitMindError):
    """The model answered, but the answer could not be turned into a Decision."""

    kind = ErrorKind.VALIDATION


class ProviderNotFound(GitMindError):
    kind = ErrorKind.INPUT

    def __init__(self, name: str):
        super().__init__(f"provider not found: {name}")
        self.name = name


class OperationTimeout(GitMindError):
    kind = ErrorKind.TRANSIENT

    def __init__(self, operation: str, seconds: float):
        super().__init__(f"{operation} timed out after {seconds:g}s")
        self.operation = operation
        self.seconds = seconds

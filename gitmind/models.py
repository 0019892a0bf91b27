"""Shared models for gitmind."""
import os
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .commit_message import CommitMessage

PROTECTED_FALLBACK = ("main", "master", "develop", "development", "production", "prod")

# Thresholds above which a changeset counts as large.
LARGE_CHANGESET_FILES = 20
LARGE_CHANGESET_LINES = 500

REVIEW_THRESHOLD = 0.7
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


class ChangeStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    status: ChangeStatus
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    is_binary: bool = False
    patch_preview: Optional[str] = None


class RepositorySnapshot(BaseModel):
    """Point-in-time view of a repository's working tree."""

    model_config = ConfigDict(frozen=True)

    path: str
    current_branch: str
    has_remote: bool = False
    remote_name: Optional[str] = None
    remote_url: Optional[str] = None
    is_github_remote: bool = False
    commits_ahead: int = Field(default=0, ge=0)
    commits_behind: int = Field(default=0, ge=0)
    changes: Tuple[FileChange, ...] = ()

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value:
            raise ValueError("repository path cannot be empty")
        return os.path.abspath(value)

    @property
    def is_clean(self) -> bool:
        return not self.changes

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def total_changes(self) -> int:
        return len(self.changes)

    @property
    def total_additions(self) -> int:
        return sum(change.additions for change in self.changes)

    @property
    def total_deletions(self) -> int:
        return sum(change.deletions for change in self.changes)

    @property
    def change_summary(self) -> str:
        if not self.has_changes:
            return "no changes"
        return f"{self.total_changes} file(s) changed, +{self.total_additions} -{self.total_deletions}"

    @property
    def is_large_changeset(self) -> bool:
        return (
            self.total_changes > LARGE_CHANGESET_FILES
            or self.total_additions + self.total_deletions > LARGE_CHANGESET_LINES
        )

    def changes_by_status(self, status: ChangeStatus) -> List[FileChange]:
        return [change for change in self.changes if change.status == status]

    @property
    def sync_status_summary(self) -> str:
        if not self.has_remote:
            return "no remote"
        if self.commits_ahead == 0 and self.commits_behind == 0:
            return "synced"
        parts = []
        if self.commits_ahead:
            parts.append(f"↑{self.commits_ahead}")
        if self.commits_behind:
            parts.append(f"↓{self.commits_behind}")
        return " ".join(parts)


class BranchType(str, Enum):
    PROTECTED = "protected"
    FEATURE = "feature"
    HOTFIX = "hotfix"
    BUGFIX = "bugfix"
    RELEASE = "release"
    REFACTOR = "refactor"
    OTHER = "other"


_PREFIX_TYPES = (
    (("feature/", "feat/"), BranchType.FEATURE),
    (("hotfix/",), BranchType.HOTFIX),
    (("bugfix/", "fix/"), BranchType.BUGFIX),
    (("release/",), BranchType.RELEASE),
    (("refactor/",), BranchType.REFACTOR),
)


def detect_branch_type(name: str, protected_branches: Sequence[str] = ()) -> BranchType:
    """Classify a branch: configured list, then common protected names, then prefix."""
    if name in protected_branches or name in PROTECTED_FALLBACK:
        return BranchType.PROTECTED

    lower = name.lower()
    for prefixes, branch_type in _PREFIX_TYPES:
        if lower.startswith(prefixes):
            return branch_type
    return BranchType.OTHER


class BranchContext(BaseModel):
    """Metadata about a branch: type, parentage and divergence."""

    model_config = ConfigDict(frozen=True)

    name: str
    branch_type: BranchType = BranchType.OTHER
    parent: Optional[str] = None
    upstream: Optional[str] = None
    ahead_by: int = Field(default=0, ge=0)
    behind_by: int = Field(default=0, ge=0)
    commit_count: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("branch name cannot be empty")
        return value

    @property
    def is_protected(self) -> bool:
        return self.branch_type == BranchType.PROTECTED

    @property
    def should_create_branch(self) -> bool:
        return self.is_protected

    def can_merge_to(self, target: str) -> bool:
        if self.name == target:
            return False
        return not self.is_protected

    @property
    def suggested_merge_target(self) -> str:
        return self.parent or "main"


class APITier(str, Enum):
    UNKNOWN = "unknown"
    FREE = "free"
    PRO = "pro"

    @classmethod
    def parse(cls, value: str) -> "APITier":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid API tier: {value}") from None


class APIKey(BaseModel):
    """Provider API key with tier information. Only a masked form is ever shown."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(repr=False)
    provider: str
    tier: APITier = APITier.UNKNOWN

    @field_validator("key")
    @classmethod
    def _key_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("API key cannot be empty")
        return value

    @field_validator("provider")
    @classmethod
    def _provider_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("provider cannot be empty")
        return value

    @property
    def is_free(self) -> bool:
        return self.tier == APITier.FREE

    @property
    def is_pro(self) -> bool:
        return self.tier == APITier.PRO

    @property
    def max_tokens_per_request(self) -> int:
        return 8000 if self.is_pro else 2000

    @property
    def should_reduce_context(self) -> bool:
        return not self.is_pro

    @property
    def masked(self) -> str:
        if len(self.key) > 4:
            return self.key[:4] + "***"
        return "***"

    def __str__(self) -> str:
        return f"APIKey(provider={self.provider}, tier={self.tier.value}, key={self.masked})"


class ActionType(str, Enum):
    COMMIT_DIRECT = "commit-direct"
    CREATE_BRANCH = "create-branch"
    SPLIT_COMMITS = "split-commits"
    REVIEW = "review"
    MERGE = "merge"
    CREATE_PR = "create-pr"


class MergeStrategy(str, Enum):
    REGULAR = "regular"
    SQUASH = "squash"
    FAST_FORWARD = "fast-forward"
    REBASE = "rebase"
    ASK = "ask"


class Alternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ActionType
    description: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    branch_name: Optional[str] = None


class Decision(BaseModel):
    """The model's recommendation for how to proceed."""

    model_config = ConfigDict(frozen=True)

    action: ActionType
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    suggested_message: Optional[CommitMessage] = None
    branch_name: Optional[str] = None
    merge_strategy: Optional[MergeStrategy] = None
    target_branch: Optional[str] = None
    alternatives: Tuple[Alternative, ...] = ()
    review_requested: bool = False

    @field_validator("reasoning")
    @classmethod
    def _reasoning_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("decision reasoning cannot be empty")
        return value

    @property
    def requires_review(self) -> bool:
        return self.review_requested or self.confidence < REVIEW_THRESHOLD

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE

    @property
    def is_medium_confidence(self) -> bool:
        return MEDIUM_CONFIDENCE <= self.confidence < HIGH_CONFIDENCE

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < MEDIUM_CONFIDENCE

    @property
    def confidence_level(self) -> str:
        if self.is_high_confidence:
            return "high"
        if self.is_medium_confidence:
            return "medium"
        return "low"

    @property
    def should_show_alternatives(self) -> bool:
        if not self.is_high_confidence:
            return True
        return any(alt.confidence >= 0.6 for alt in self.alternatives)

    def validate_action(self) -> None:
        """Raise ``ValueError`` if the action lacks the data needed to execute it."""
        if self.action == ActionType.CREATE_BRANCH and not self.branch_name:
            raise ValueError("branch name required for create-branch action")
        if self.action == ActionType.COMMIT_DIRECT and self.suggested_message is None:
            raise ValueError("commit message required for commit-direct action")
        if self.action == ActionType.MERGE and not self.target_branch:
            raise ValueError("target branch required for merge action")

    def __str__(self) -> str:
        return f"Decision(action={self.action.value}, confidence={self.confidence:.2f}, reasoning={self.reasoning})"


class BranchStatus(str, Enum):
    UNKNOWN = "unknown"
    UP_TO_DATE = "up-to-date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    CONFLICT = "conflict"


class MergeStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_branch: str
    target_branch: str
    status: BranchStatus = BranchStatus.UNKNOWN
    ahead_count: int = 0
    behind_count: int = 0
    common_ancestor: Optional[str] = None
    conflicts: Tuple[str, ...] = ()
    can_fast_forward: bool = False

    @classmethod
    def derive(
        cls,
        source_branch: str,
        target_branch: str,
        ahead: int,
        behind: int,
        common_ancestor: Optional[str] = None,
        conflicts: Sequence[str] = (),
    ) -> "MergeStatus":
        """Derive the status from divergence counts; conflicts override everything."""
        if ahead == 0 and behind == 0:
            status, fast_forward = BranchStatus.UP_TO_DATE, True
        elif ahead > 0 and behind == 0:
            status, fast_forward = BranchStatus.AHEAD, True
        elif ahead == 0 and behind > 0:
            status, fast_forward = BranchStatus.BEHIND, False
        else:
            status, fast_forward = BranchStatus.DIVERGED, False

        if conflicts:
            status, fast_forward = BranchStatus.CONFLICT, False

        return cls(
            source_branch=source_branch,
            target_branch=target_branch,
            status=status,
            ahead_count=ahead,
            behind_count=behind,
            common_ancestor=common_ancestor,
            conflicts=tuple(conflicts),
            can_fast_forward=fast_forward,
        )


class FileBlockKind(str, Enum):
    TEXT = "text"
    BINARY = "binary"
    LARGE = "large"
    DIRECTORY = "directory"
    UNREADABLE = "unreadable"


class FileContentBlock(BaseModel):
    """Content of a new (not yet staged) file, as shown to the model."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: FileBlockKind
    lines: Tuple[str, ...] = ()
    total_lines: int = 0
    size: int = 0

    @property
    def truncated(self) -> bool:
        return self.total_lines > len(self.lines)

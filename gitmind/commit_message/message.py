"""Structured commit messages."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .validation import MAX_TITLE_LENGTH
from .validator import CommitMessageValidator

CONVENTIONAL_TYPES = (
    "feat", "fix", "docs", "style", "refactor", "perf",
    "test", "chore", "build", "ci", "revert",
)

# Truncated titles are cut to this many characters before "..." is appended.
_TRUNCATE_AT = MAX_TITLE_LENGTH - 3
# A word boundary is only used when it leaves a title longer than this.
_MIN_WORD_BOUNDARY = 50


def _clean_body(body: Optional[str]) -> Optional[str]:
    if body is None:
        return None
    return body.strip() or None


def truncate_title(title: str) -> str:
    """Shorten a title to at most 72 characters, preferring a word boundary."""
    if len(title) <= MAX_TITLE_LENGTH:
        return title
    head = title[:_TRUNCATE_AT]
    last_space = head.rfind(" ")
    if last_space > _MIN_WORD_BOUNDARY:
        return title[:last_space] + "..."
    return head + "..."


class CommitMessage(BaseModel):
    """An immutable commit message.

    Build instances with :meth:`create` or :meth:`conventional_commit`; both enforce
    the title rules at construction time. :meth:`validate_message` reports
    style problems (such as a trailing period) without correcting them.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    body: Optional[str] = None
    conventional: bool = False
    commit_type: Optional[str] = None
    scope: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("commit title cannot be empty")
        return value

    @field_validator("body")
    @classmethod
    def _strip_body(cls, value: Optional[str]) -> Optional[str]:
        return _clean_body(value)

    @classmethod
    def create(cls, title: str, body: Optional[str] = None) -> "CommitMessage":
        """Create a plain commit message, truncating an over-long title."""
        title = (title or "").strip()
        if not title:
            raise ValueError("commit title cannot be empty")
        return cls(title=truncate_title(title), body=body)

    @classmethod
    def conventional_commit(
        cls,
        commit_type: str,
        scope: Optional[str],
        title: str,
        body: Optional[str] = None,
        breaking: bool = False,
    ) -> "CommitMessage":
        """Create a ``type(scope): title`` message; fails if it exceeds 72 chars.

        ``breaking`` marks a breaking change as ``type(scope)!: title``.
        """
        if not commit_type:
            raise ValueError("commit type cannot be empty")
        if commit_type not in CONVENTIONAL_TYPES:
            raise ValueError(f"invalid commit type: {commit_type}")
        title = (title or "").strip()
        if not title:
            raise ValueError("commit title cannot be empty")

        full_title = commit_type
        if scope:
            full_title += f"({scope})"
        if breaking:
            full_title += "!"
        full_title += f": {title}"

        if len(full_title) > MAX_TITLE_LENGTH:
            raise ValueError(
                f"commit title too long ({len(full_title)} chars), should be <= {MAX_TITLE_LENGTH}"
            )

        return cls(
            title=full_title,
            body=body,
            conventional=True,
            commit_type=commit_type,
            scope=scope or None,
        )

    def is_conventional(self) -> bool:
        return self.conventional

    def with_body(self, body: Optional[str]) -> "CommitMessage":
        return self.model_copy(update={"body": _clean_body(body)})

    @property
    def full_message(self) -> str:
        if not self.body:
            return self.title
        return f"{self.title}\n\n{self.body}"

    def validate_message(self) -> None:
        """Raise ``ValueError`` if the message breaks commit message conventions."""
        is_valid, reason = CommitMessageValidator().validate(self.full_message, self.conventional)
        if not is_valid:
            raise ValueError(reason)

    def __str__(self) -> str:
        return self.full_message

"""Strategies for turning model-written text into a CommitMessage."""
import re
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from .message import CONVENTIONAL_TYPES, CommitMessage

_CONVENTIONAL_TITLE = re.compile(r"^(?P<type>[a-z]+)(?:\((?P<scope>[^)]*)\))?(?P<breaking>!)?:\s*(?P<title>.+)$")


def split_message(text: str) -> Tuple[str, Optional[str]]:
    """Split raw message text into its first line and the remaining body."""
    lines = (text or "").strip().splitlines()
    if not lines:
        return "", None
    body = "\n".join(lines[1:]).strip()
    return lines[0].strip(), body or None


class CommitMessageStrategy(ABC):
    """Abstract base class for commit message construction strategies."""

    @abstractmethod
    def build(self, text: str) -> CommitMessage:
        """Build a commit message from model output; raise ``ValueError`` if invalid."""
        pass


class SimpleCommitStrategy(CommitMessageStrategy):
    """Plain messages; over-long titles are truncated."""

    def build(self, text: str) -> CommitMessage:
        title, body = split_message(text)
        return CommitMessage.create(title, body)


class ConventionalCommitStrategy(CommitMessageStrategy):
    """Conventional commits when the title is already in ``type(scope): text`` form.

    Titles that are not conventional fall back to plain messages; a
    conventional title longer than 72 characters is rejected. A
    breaking-change marker (``type(scope)!: text``) is kept.
    """

    def build(self, text: str) -> CommitMessage:
        title, body = split_message(text)
        match = _CONVENTIONAL_TITLE.match(title)
        if match and match.group("type") in CONVENTIONAL_TYPES:
            return CommitMessage.conventional_commit(
                match.group("type"),
                (match.group("scope") or "").strip() or None,
                match.group("title"),
                body,
                breaking=bool(match.group("breaking")),
            )
        return CommitMessage.create(title, body)


def strategy_for(use_conventional: bool) -> CommitMessageStrategy:
    return ConventionalCommitStrategy() if use_conventional else SimpleCommitStrategy()

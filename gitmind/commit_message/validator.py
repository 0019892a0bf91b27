"""Commit message validation."""
from typing import Tuple
from .validation import MAX_BODY_LINE_LENGTH, MAX_TITLE_LENGTH, create_validation_chain


class CommitMessageValidator:
    """Validates commit messages against commit message conventions."""

    def __init__(self, max_title_length: int = MAX_TITLE_LENGTH, max_body_length: int = MAX_BODY_LINE_LENGTH):
        self.max_title_length = max_title_length
        self.max_body_line_length = max_body_length
        self.plain_chain = create_validation_chain(max_title_length, max_body_length)
        self.conventional_chain = create_validation_chain(max_title_length, max_body_length, conventional=True)

    def validate(self, message: str, conventional: bool = False) -> Tuple[bool, str]:
        """Validate a full commit message (title, blank line, body)."""
        chain = self.conventional_chain if conventional else self.plain_chain
        return chain.handle(message)

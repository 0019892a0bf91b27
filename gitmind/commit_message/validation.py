"""Commit message validation using Chain of Responsibility pattern."""
from abc import ABC, abstractmethod
from typing import Optional, Tuple

MAX_TITLE_LENGTH = 72
MAX_BODY_LINE_LENGTH = 72


class ValidationHandler(ABC):
    """Abstract base class for validation handlers."""

    def __init__(self, next_handler: Optional['ValidationHandler'] = None):
        self.next_handler = next_handler

    def handle(self, message: str) -> Tuple[bool, str]:
        """Handle validation and pass to next handler if valid."""
        result = self.validate(message)
        if not result[0] or not self.next_handler:
            return result
        return self.next_handler.handle(message)

    @abstractmethod
    def validate(self, message: str) -> Tuple[bool, str]:
        """Validate the commit message."""
        pass


class EmptyTitleHandler(ValidationHandler):
    """Validates that the title is not empty."""

    def validate(self, message: str) -> Tuple[bool, str]:
        lines = message.split('\n')
        if not lines or not lines[0].strip():
            return False, "commit title is empty"
        return True, ""


class TitleLengthHandler(ValidationHandler):
    """Validates the title length."""

    def __init__(self, max_length: int = MAX_TITLE_LENGTH, next_handler: Optional[ValidationHandler] = None):
        super().__init__(next_handler)
        self.max_length = max_length

    def validate(self, message: str) -> Tuple[bool, str]:
        title = message.split('\n')[0]
        if len(title) > self.max_length:
            return False, f"commit title too long ({len(title)} chars), should be <= {self.max_length}"
        return True, ""


class TitlePeriodHandler(ValidationHandler):
    """Validates that the title doesn't end with a period."""

    def validate(self, message: str) -> Tuple[bool, str]:
        title = message.split('\n')[0]
        if title.endswith('.'):
            return False, "commit title should not end with a period"
        return True, ""


class ConventionalFormatHandler(ValidationHandler):
    """Validates conventional commit format."""

    def validate(self, message: str) -> Tuple[bool, str]:
        title = message.split('\n')[0]
        if ': ' not in title:
            return False, "commit title must follow format: type(scope): description"
        return True, ""


class BlankLineHandler(ValidationHandler):
    """Validates blank line after the title."""

    def validate(self, message: str) -> Tuple[bool, str]:
        lines = message.split('\n')
        if len(lines) > 1 and lines[1] != '':
            return False, "leave one blank line after the title"
        return True, ""


class BodyLineLengthHandler(ValidationHandler):
    """Validates body line lengths."""

    def __init__(self, max_length: int = MAX_BODY_LINE_LENGTH, next_handler: Optional[ValidationHandler] = None):
        super().__init__(next_handler)
        self.max_length = max_length

    def validate(self, message: str) -> Tuple[bool, str]:
        lines = message.split('\n')
        for number, line in enumerate(lines[2:], start=1):
            if len(line) > self.max_length:
                return False, (
                    f"commit body line {number} too long ({len(line)} chars), "
                    f"should wrap at {self.max_length}"
                )
        return True, ""


def create_validation_chain(
    max_title_length: int = MAX_TITLE_LENGTH,
    max_body_length: int = MAX_BODY_LINE_LENGTH,
    conventional: bool = False,
) -> ValidationHandler:
    """Create the default validation chain."""
    body_length = BodyLineLengthHandler(max_body_length)
    blank_line = BlankLineHandler(body_length)
    tail: ValidationHandler = ConventionalFormatHandler(blank_line) if conventional else blank_line
    title_period = TitlePeriodHandler(tail)
    title_length = TitleLengthHandler(max_title_length, title_period)
    return EmptyTitleHandler(title_length)

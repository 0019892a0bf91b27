"""Tests for commit message validation."""
import pytest
from gitmind.commit_message.validation import (
    EmptyTitleHandler,
    TitleLengthHandler,
    TitlePeriodHandler,
    ConventionalFormatHandler,
    BlankLineHandler,
    BodyLineLengthHandler,
    create_validation_chain,
)
from gitmind.commit_message.validator import CommitMessageValidator

def test_empty_title_handler():
    handler = EmptyTitleHandler()

    is_valid, msg = handler.validate("")
    assert not is_valid
    assert "title is empty" in msg

    is_valid, msg = handler.validate("   \nbody")
    assert not is_valid

    is_valid, msg = handler.validate("Add feature")
    assert is_valid

def test_title_length_handler():
    handler = TitleLengthHandler(max_length=10)

    is_valid, msg = handler.validate("This is way too long")
    assert not is_valid
    assert "title too long (20 chars)" in msg

    is_valid, msg = handler.validate("1234567890")
    assert is_valid

def test_title_period_handler():
    handler = TitlePeriodHandler()

    is_valid, msg = handler.validate("Add feature.")
    assert not is_valid
    assert "should not end with a period" in msg

    is_valid, msg = handler.validate("Add feature")
    assert is_valid

def test_conventional_format_handler():
    handler = ConventionalFormatHandler()

    is_valid, msg = handler.validate("bad format")
    assert not is_valid
    assert "must follow format" in msg

    is_valid, msg = handler.validate("feat: good format")
    assert is_valid

def test_blank_line_handler():
    handler = BlankLineHandler()

    is_valid, msg = handler.validate("Add feature\nNo blank line")
    assert not is_valid
    assert "blank line after the title" in msg

    is_valid, msg = handler.validate("Add feature\n\nWith blank line")
    assert is_valid

def test_body_line_length_handler():
    handler = BodyLineLengthHandler(max_length=20)

    is_valid, msg = handler.validate("Title\n\nshort line\n" + "x" * 21)
    assert not is_valid
    assert "body line 2 too long" in msg

    is_valid, msg = handler.validate("Title\n\nshort line")
    assert is_valid

def test_chain_stops_at_first_failure():
    chain = create_validation_chain()

    # Period is reported even though the body is also too long
    is_valid, msg = chain.handle("Add feature.\n\n" + "x" * 100)
    assert not is_valid
    assert "period" in msg

def test_conventional_chain_requires_type_prefix():
    validator = CommitMessageValidator()

    assert validator.validate("Add feature")[0]
    is_valid, msg = validator.validate("Add feature", conventional=True)
    assert not is_valid
    assert "type(scope)" in msg
    assert validator.validate("feat(api): add feature", conventional=True)[0]

def test_custom_limits():
    validator = CommitMessageValidator(max_title_length=5, max_body_length=5)

    assert not validator.validate("Too long title")[0]
    assert validator.validate("Short\n\nbody")[0]
    assert not validator.validate("Short\n\nlonger body")[0]

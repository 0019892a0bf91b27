"""Tests for commit message construction."""
import pytest

from gitmind.commit_message import (
    CommitMessage,
    ConventionalCommitStrategy,
    SimpleCommitStrategy,
    strategy_for,
    truncate_title,
)
from gitmind.commit_message.strategy import split_message


def test_create_strips_whitespace():
    message = CommitMessage.create("  Add login form  ", "  Body text \n")

    assert message.title == "Add login form"
    assert message.body == "Body text"
    assert not message.is_conventional()


@pytest.mark.parametrize("title", ["", "   ", None])
def test_create_rejects_empty_title(title):
    with pytest.raises(ValueError):
        CommitMessage.create(title)


def test_short_title_is_unchanged():
    title = "x" * 72
    assert CommitMessage.create(title).title == title


def test_long_title_cut_at_word_boundary():
    title = "a" * 60 + " " + "b" * 30

    message = CommitMessage.create(title)

    assert message.title == "a" * 60 + "..."


def test_long_title_hard_cut_without_late_space():
    # The only space is before position 50, so no word boundary is used
    title = "a" * 10 + " " + "b" * 80

    message = CommitMessage.create(title)

    assert message.title == title[:69] + "..."
    assert len(message.title) == 72


def test_truncate_title_without_spaces():
    assert truncate_title("x" * 100) == "x" * 69 + "..."


def test_conventional_commit():
    message = CommitMessage.conventional_commit("feat", "api", "add retries")

    assert message.title == "feat(api): add retries"
    assert message.is_conventional()
    assert message.commit_type == "feat"
    assert message.scope == "api"


def test_conventional_commit_without_scope():
    message = CommitMessage.conventional_commit("fix", None, "handle empty diff", "Details")

    assert message.title == "fix: handle empty diff"
    assert message.full_message == "fix: handle empty diff\n\nDetails"


def test_conventional_commit_rejects_unknown_type():
    with pytest.raises(ValueError, match="invalid commit type"):
        CommitMessage.conventional_commit("feature", "api", "add retries")


def test_conventional_commit_rejects_long_title():
    with pytest.raises(ValueError, match="too long"):
        CommitMessage.conventional_commit("feat", "api", "x" * 70)


def test_full_message_without_body():
    assert CommitMessage.create("Add tests").full_message == "Add tests"


def test_validate_message_reports_period_without_fixing():
    message = CommitMessage.create("Add tests.")

    with pytest.raises(ValueError, match="period"):
        message.validate_message()
    assert message.title == "Add tests."


def test_with_body_returns_new_message():
    message = CommitMessage.create("Add tests")
    updated = message.with_body("More detail")

    assert message.body is None
    assert updated.body == "More detail"


def test_split_message():
    assert split_message("Title\n\nLine one\nLine two") == ("Title", "Line one\nLine two")
    assert split_message("Title only") == ("Title only", None)
    assert split_message("") == ("", None)


def test_simple_strategy_keeps_conventional_text_plain():
    message = SimpleCommitStrategy().build("feat(api): add retries\n\nBody")

    assert message.title == "feat(api): add retries"
    assert not message.is_conventional()
    assert message.body == "Body"


def test_conventional_strategy_parses_prefix():
    message = ConventionalCommitStrategy().build("fix(parser): handle renames")

    assert message.is_conventional()
    assert message.commit_type == "fix"
    assert message.scope == "parser"
    assert message.title == "fix(parser): handle renames"


def test_conventional_strategy_falls_back_to_plain():
    message = ConventionalCommitStrategy().build("Update the readme")

    assert not message.is_conventional()
    assert message.title == "Update the readme"


@pytest.mark.parametrize(
    "text, scope",
    [("feat(api)!: drop v1 endpoints", "api"), ("feat!: drop v1 endpoints", None)],
)
def test_conventional_strategy_keeps_breaking_marker(text, scope):
    message = ConventionalCommitStrategy().build(text)

    assert message.is_conventional()
    assert message.title == text
    assert message.commit_type == "feat"
    assert message.scope == scope


def test_breaking_conventional_commit():
    message = CommitMessage.conventional_commit("refactor", "config", "rename keys", breaking=True)

    assert message.title == "refactor(config)!: rename keys"
    message.validate_message()


def test_strategy_for():
    assert isinstance(strategy_for(True), ConventionalCommitStrategy)
    assert isinstance(strategy_for(False), SimpleCommitStrategy)

"""Tests for mapping model output to decisions."""
import json

import pytest

from gitmind.errors import ResponseValidationError
from gitmind.mapper import map_action_type, map_merge_strategy, parse_analysis, parse_merge_message
from gitmind.models import ActionType, MergeStrategy


def _content(**overrides):
    data = {
        "commit_message": "Add login form\n\nAdds the form and its validation",
        "action": "commit-direct",
        "confidence": 0.9,
        "reasoning": "Small self-contained change",
    }
    data.update(overrides)
    return json.dumps(data)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("commit-direct", ActionType.COMMIT_DIRECT),
        (" Create-Branch ", ActionType.CREATE_BRANCH),
        ("merge", ActionType.MERGE),
        ("split-commits", ActionType.SPLIT_COMMITS),
        ("rewrite-history", ActionType.REVIEW),
        ("", ActionType.REVIEW),
    ],
)
def test_map_action_type(raw, expected):
    assert map_action_type(raw) == expected


def test_map_merge_strategy():
    assert map_merge_strategy("squash") == MergeStrategy.SQUASH
    assert map_merge_strategy("ask") == MergeStrategy.REGULAR
    assert map_merge_strategy("octopus") == MergeStrategy.REGULAR


def test_parse_analysis():
    decision = parse_analysis(_content())

    assert decision.action == ActionType.COMMIT_DIRECT
    assert decision.confidence == 0.9
    assert decision.suggested_message.title == "Add login form"
    assert decision.suggested_message.body == "Adds the form and its validation"
    assert decision.target_branch is None


def test_unknown_action_becomes_review():
    decision = parse_analysis(_content(action="delete-everything"))
    assert decision.action == ActionType.REVIEW


def test_create_branch_name_is_kept():
    decision = parse_analysis(_content(action="create-branch", branch_name=" feature/login-form "))

    assert decision.branch_name == "feature/login-form"
    decision.validate_action()


def test_merge_decision_gets_target():
    decision = parse_analysis(_content(action="merge"), merge_target="develop")

    assert decision.target_branch == "develop"
    decision.validate_action()


def test_conventional_message():
    decision = parse_analysis(_content(commit_message="feat(auth): add login form"), use_conventional=True)

    assert decision.suggested_message.is_conventional()
    assert decision.suggested_message.commit_type == "feat"


def test_invalid_alternatives_are_dropped():
    alternatives = [
        {"action": "create-branch", "description": "Start a branch", "confidence": 0.6},
        {"action": "review", "description": "Too sure", "confidence": 1.5},
        {"action": "review", "description": "", "confidence": 0.3},
        "not an object",
    ]

    decision = parse_analysis(_content(alternatives=alternatives))

    assert len(decision.alternatives) == 1
    assert decision.alternatives[0].action == ActionType.CREATE_BRANCH


@pytest.mark.parametrize(
    "content",
    [
        None,
        "   ",
        "not json",
        "[1, 2]",
        json.dumps({"action": "commit-direct"}),
        _content(confidence=1.7),
        _content(reasoning=""),
        _content(commit_message=""),
    ],
)
def test_malformed_output(content):
    with pytest.raises(ResponseValidationError):
        parse_analysis(content)


def test_parse_merge_message():
    content = json.dumps(
        {
            "merge_message": "Merge feature/login: add login\n\n- Add login stub\n- Implement login",
            "strategy": "squash",
            "reasoning": "Small noisy commits",
        }
    )

    message, strategy, reasoning = parse_merge_message(content)

    assert message.title == "Merge feature/login: add login"
    assert message.body == "- Add login stub\n- Implement login"
    assert strategy == MergeStrategy.SQUASH
    assert reasoning == "Small noisy commits"


def test_parse_merge_message_rejects_empty_message():
    content = json.dumps({"merge_message": "", "strategy": "regular", "reasoning": "x"})

    with pytest.raises(ResponseValidationError):
        parse_merge_message(content)

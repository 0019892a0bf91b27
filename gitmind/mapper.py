"""Turns the model's JSON output into domain objects."""
import json
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .commit_message import CommitMessage, strategy_for
from .commit_message.strategy import split_message
from .errors import ResponseValidationError
from .models import ActionType, Alternative, Decision, MergeStrategy
from .schemas import AnalysisPayload, MergeMessagePayload


def map_action_type(action: str) -> ActionType:
    """Map an action string to :class:`ActionType`; anything unknown means review."""
    try:
        return ActionType((action or "").strip().lower())
    except ValueError:
        return ActionType.REVIEW


def map_merge_strategy(strategy: str) -> MergeStrategy:
    try:
        value = MergeStrategy((strategy or "").strip().lower())
    except ValueError:
        return MergeStrategy.REGULAR
    if value == MergeStrategy.ASK:
        return MergeStrategy.REGULAR
    return value


def _load(content: Optional[str]) -> Dict[str, Any]:
    if not content or not content.strip():
        raise ResponseValidationError("empty response content")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ResponseValidationError(f"failed to parse structured output: {e}") from e
    if not isinstance(data, dict):
        raise ResponseValidationError("structured output is not a JSON object")
    return data


def _alternatives(raw: List[Dict[str, Any]]) -> List[Alternative]:
    alternatives = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            alternatives.append(
                Alternative(
                    action=map_action_type(str(item.get("action", ""))),
                    description=item.get("description", ""),
                    confidence=item.get("confidence"),
                    branch_name=item.get("branch_name") or None,
                )
            )
        except ValidationError:
            continue
    return alternatives


def decision_from_payload(
    payload: AnalysisPayload,
    use_conventional: bool = False,
    merge_target: Optional[str] = None,
) -> Decision:
    """Build a :class:`Decision` from a validated payload.

    A bad commit message or an out-of-range confidence fails the whole
    mapping; invalid alternatives are dropped one by one.
    """
    try:
        message = strategy_for(use_conventional).build(payload.commit_message)
    except ValueError as e:
        raise ResponseValidationError(f"invalid commit message from AI: {e}") from e

    action = map_action_type(payload.action)
    try:
        return Decision(
            action=action,
            confidence=payload.confidence,
            reasoning=payload.reasoning,
            suggested_message=message,
            branch_name=(payload.branch_name or "").strip() or None,
            target_branch=merge_target if action == ActionType.MERGE else None,
            alternatives=tuple(_alternatives(payload.alternatives)),
        )
    except ValidationError as e:
        raise ResponseValidationError(f"invalid decision from AI: {e}") from e


def parse_analysis(
    content: Optional[str],
    use_conventional: bool = False,
    merge_target: Optional[str] = None,
) -> Decision:
    data = _load(content)
    try:
        payload = AnalysisPayload.model_validate(data)
    except ValidationError as e:
        raise ResponseValidationError(f"structured output does not match schema: {e}") from e
    return decision_from_payload(payload, use_conventional, merge_target)


def merge_message_from_payload(payload: MergeMessagePayload):
    """Return ``(CommitMessage, MergeStrategy, reasoning)`` for a merge payload."""
    title, body = split_message(payload.merge_message)
    try:
        message = CommitMessage.create(title, body)
    except ValueError as e:
        raise ResponseValidationError(f"invalid merge message from AI: {e}") from e
    return message, map_merge_strategy(payload.strategy), payload.reasoning


def parse_merge_message(content: Optional[str]):
    data = _load(content)
    try:
        payload = MergeMessagePayload.model_validate(data)
    except ValidationError as e:
        raise ResponseValidationError(f"structured output does not match schema: {e}") from e
    return merge_message_from_payload(payload)

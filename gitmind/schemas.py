"""Request/response types exchanged with LLM providers, and the JSON schemas
the model's output must follow."""
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .commit_message import CommitMessage
from .models import (
    APIKey,
    BranchContext,
    Decision,
    FileContentBlock,
    MergeStrategy,
    RepositorySnapshot,
)

ANALYSIS_SCHEMA_NAME = "commit_analysis"
MERGE_MESSAGE_SCHEMA_NAME = "merge_message"

ANALYSIS_ACTIONS = ["commit-direct", "create-branch", "review", "merge"]
MERGE_STRATEGIES = ["squash", "regular", "fast-forward"]

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "commit_message": {
            "type": "string",
            "description": "Clear, concise commit message describing the changes",
        },
        "action": {
            "type": "string",
            "enum": ANALYSIS_ACTIONS,
            "description": "Recommended action to take",
        },
        "confidence": {
            "type": "number",
            "description": "Confidence level between 0.0 and 1.0",
        },
        "reasoning": {
            "type": "string",
            "description": "Brief explanation for the recommendation",
        },
        "branch_name": {
            "type": "string",
            "description": "Suggested branch name if action is create-branch",
        },
        "alternatives": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string"},
                    "description": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["action", "description", "confidence"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["commit_message", "action", "confidence", "reasoning"],
    "additionalProperties": False,
}

MERGE_MESSAGE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "merge_message": {
            "type": "string",
            "description": "Merge commit message summarizing the merged work",
        },
        "strategy": {
            "type": "string",
            "enum": MERGE_STRATEGIES,
            "description": "Suggested merge strategy",
        },
        "reasoning": {
            "type": "string",
            "description": "Brief explanation for the suggested strategy",
        },
    },
    "required": ["merge_message", "strategy", "reasoning"],
    "additionalProperties": False,
}


# Payloads: the JSON the model writes. Values are checked again when the
# mapper turns them into domain objects.

class AlternativePayload(BaseModel):
    action: str
    description: str
    confidence: float


class AnalysisPayload(BaseModel):
    commit_message: str = Field(description="Clear, concise commit message describing the changes")
    action: str = Field(description="One of commit-direct, create-branch, review, merge")
    confidence: float = Field(description="Confidence level between 0.0 and 1.0")
    reasoning: str = Field(description="Brief explanation for the recommendation")
    branch_name: Optional[str] = Field(default=None, description="Suggested branch name if action is create-branch")
    alternatives: List[Dict[str, Any]] = Field(default_factory=list)


class MergeMessagePayload(BaseModel):
    merge_message: str
    strategy: str = Field(description="One of squash, regular, fast-forward")
    reasoning: str


# Chat completion wire format

class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    id: str = ""
    model: str = ""
    choices: List[ChatChoice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


def response_format(name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": name, "strict": True, "schema": schema},
    }


# Provider inputs and outputs

class AnalysisRequest(BaseModel):
    """Everything the model needs to recommend how to commit."""

    model_config = ConfigDict(frozen=True)

    snapshot: RepositorySnapshot
    branch: Optional[BranchContext] = None
    api_key: APIKey
    diff: str = ""
    file_blocks: Tuple[FileContentBlock, ...] = ()
    recent_log: Tuple[str, ...] = ()
    user_prompt: str = ""
    use_conventional: bool = False
    merge_opportunity: bool = False
    merge_target_branch: Optional[str] = None
    merge_commit_count: int = 0


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision: Decision
    tokens_used: int = 0
    model: str = ""
    processing_time_ms: int = 0


class MergeMessageRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_branch: str
    target_branch: str
    commits: Tuple[str, ...] = ()
    api_key: APIKey

    @property
    def commit_count(self) -> int:
        return len(self.commits)


class MergeMessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    merge_message: CommitMessage
    suggested_strategy: MergeStrategy = MergeStrategy.REGULAR
    reasoning: str = ""
    tokens_used: int = 0
    model: str = ""

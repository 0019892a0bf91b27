"""Tests for LLM providers."""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pydantic_ai.exceptions import ModelHTTPError

from gitmind.errors import (
    AnalysisFailed,
    ProviderError,
    RateLimitError,
    ResponseValidationError,
    TransientError,
)
from gitmind.models import ActionType, APIKey, APITier, MergeStrategy, RepositorySnapshot
from gitmind.providers import AgentProvider, CerebrasProvider, error_from_status
from gitmind.schemas import (
    ANALYSIS_SCHEMA_NAME,
    MERGE_MESSAGE_SCHEMA_NAME,
    AnalysisPayload,
    AnalysisRequest,
    MergeMessagePayload,
    MergeMessageRequest,
)

ANALYSIS_CONTENT = json.dumps(
    {
        "commit_message": "Add login form",
        "action": "commit-direct",
        "confidence": 0.85,
        "reasoning": "Focused change",
    }
)


def _completion(content, total_tokens=42):
    return {
        "id": "chatcmpl-1",
        "model": "llama-3.3-70b",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 30, "completion_tokens": 12, "total_tokens": total_tokens},
    }


class Recorder:
    """Replays canned responses and records the request bodies.

    Each item is an exception to raise or a ``(status, kwargs)`` pair; the
    last item is repeated once the others are used up.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.bodies = []
        self.headers = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        self.headers.append(request.headers)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        status, kwargs = item
        return httpx.Response(status, **kwargs)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def request_for(free_key):
    snapshot = RepositorySnapshot(path="/repo", current_branch="main")

    def _build(api_key=free_key, **kwargs):
        return AnalysisRequest(snapshot=snapshot, api_key=api_key, diff="+x", **kwargs)

    return _build


def _provider(api_key, recorder, sleep=None):
    return CerebrasProvider(
        api_key,
        transport=httpx.MockTransport(recorder),
        sleep=sleep or SleepRecorder(),
    )


class TestErrorFromStatus:
    def test_rate_limit(self):
        error = error_from_status(429, '{"error": {"message": "Too many requests"}}')

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 60
        assert error.message == "Too many requests"

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_transient(self, status):
        error = error_from_status(status, "upstream down")

        assert isinstance(error, TransientError)
        assert error.status_code == status

    def test_other_status_is_not_retryable(self):
        error = error_from_status(401, '{"error": {"message": "Invalid API key"}}')

        assert isinstance(error, ProviderError)
        assert "Invalid API key" in error.message

    def test_long_body_is_truncated(self):
        error = error_from_status(400, "x" * 1000)
        assert error.message.endswith("x...")


class TestCerebrasProvider:
    @pytest.mark.asyncio
    async def test_analyze(self, pro_key, request_for):
        recorder = Recorder((200, dict(json=_completion(ANALYSIS_CONTENT))))
        provider = _provider(pro_key, recorder)

        response = await provider.analyze(request_for(pro_key))

        assert response.decision.action == ActionType.COMMIT_DIRECT
        assert response.decision.suggested_message.title == "Add login form"
        assert response.tokens_used == 42
        assert response.model == "llama-3.3-70b"

        body = recorder.bodies[0]
        assert body["model"] == "llama-3.3-70b"
        assert body["response_format"]["type"] == "json_schema"
        assert body["response_format"]["json_schema"]["name"] == ANALYSIS_SCHEMA_NAME
        assert body["response_format"]["json_schema"]["strict"] is True
        assert body["messages"][0]["role"] == "system"
        assert recorder.headers[0]["authorization"] == "Bearer csk-test-1234567890"

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self, free_key, request_for):
        recorder = Recorder((429, dict(json={"error": {"message": "slow down"}})))
        sleep = SleepRecorder()
        provider = _provider(free_key, recorder, sleep)

        with pytest.raises(RateLimitError):
            await provider.analyze(request_for())

        assert len(recorder.bodies) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried_with_backoff(self, pro_key, request_for):
        recorder = Recorder((503, dict(text="unavailable")))
        sleep = SleepRecorder()
        provider = _provider(pro_key, recorder, sleep)

        with pytest.raises(AnalysisFailed) as excinfo:
            await provider.analyze(request_for(pro_key))

        assert len(recorder.bodies) == 3
        assert sleep.delays == [1, 2]
        assert excinfo.value.attempts == 3
        assert isinstance(excinfo.value.cause, TransientError)
        assert all(body["response_format"] for body in recorder.bodies)

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self, pro_key, request_for):
        recorder = Recorder(
            (502, dict(text="bad gateway")),
            (200, dict(json=_completion(ANALYSIS_CONTENT))),
        )
        sleep = SleepRecorder()
        provider = _provider(pro_key, recorder, sleep)

        response = await provider.analyze(request_for(pro_key))

        assert response.decision.confidence == 0.85
        assert sleep.delays == [1]

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, pro_key, request_for):
        recorder = Recorder(
            httpx.ConnectError("connection refused"),
            (200, dict(json=_completion(ANALYSIS_CONTENT))),
        )
        provider = _provider(pro_key, recorder)

        response = await provider.analyze(request_for(pro_key))

        assert len(recorder.bodies) == 2
        assert response.decision.action == ActionType.COMMIT_DIRECT

    @pytest.mark.asyncio
    async def test_free_tier_rate_limit_message_becomes_rate_limit(self, free_key, request_for):
        recorder = Recorder((503, dict(json={"error": {"message": "Rate limit exceeded"}})))
        sleep = SleepRecorder()
        provider = _provider(free_key, recorder, sleep)

        with pytest.raises(RateLimitError):
            await provider.analyze(request_for())

        assert len(recorder.bodies) == 1

    @pytest.mark.asyncio
    async def test_provider_error_is_not_retried(self, pro_key, request_for):
        recorder = Recorder((401, dict(json={"error": {"message": "Invalid API key"}})))
        provider = _provider(pro_key, recorder)

        with pytest.raises(ProviderError):
            await provider.analyze(request_for(pro_key))

        assert len(recorder.bodies) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            _completion("not json at all"),
            _completion(None),
            {"id": "x", "model": "m", "choices": []},
            _completion(json.dumps({"action": "commit-direct"})),
        ],
    )
    async def test_malformed_content(self, pro_key, request_for, payload):
        recorder = Recorder((200, dict(json=payload)))
        provider = _provider(pro_key, recorder)

        with pytest.raises(ResponseValidationError):
            await provider.analyze(request_for(pro_key))

        assert len(recorder.bodies) == 1

    @pytest.mark.asyncio
    async def test_generate_merge_message(self, pro_key):
        content = json.dumps(
            {"merge_message": "Add login\n\n- Stub\n- Implementation", "strategy": "squash", "reasoning": "Noisy"}
        )
        recorder = Recorder((200, dict(json=_completion(content, total_tokens=17))))
        provider = _provider(pro_key, recorder)
        request = MergeMessageRequest(
            source_branch="feature/login", target_branch="main", commits=("Stub", "Implementation"), api_key=pro_key
        )

        response = await provider.generate_merge_message(request)

        assert response.merge_message.title == "Add login"
        assert response.suggested_strategy == MergeStrategy.SQUASH
        assert response.tokens_used == 17
        assert recorder.bodies[0]["response_format"]["json_schema"]["name"] == MERGE_MESSAGE_SCHEMA_NAME

    @pytest.mark.asyncio
    async def test_validate_key(self, pro_key):
        recorder = Recorder((401, dict(json={"error": {"message": "Wrong API key"}})))
        provider = _provider(pro_key, recorder)

        with pytest.raises(ProviderError, match="Wrong API key"):
            await provider.validate_key()

    def test_custom_base_url(self, pro_key):
        provider = CerebrasProvider(pro_key, base_url="http://localhost:8080/v1/")
        assert provider.base_url == "http://localhost:8080/v1"


def _agent_result(output, total_tokens=25):
    return SimpleNamespace(output=output, usage=lambda: SimpleNamespace(total_tokens=total_tokens))


@pytest.fixture
def anthropic_key():
    return APIKey(key="sk-ant-test", provider="anthropic", tier=APITier.PRO)


class TestAgentProvider:
    def test_model_name_gets_provider_prefix(self, anthropic_key):
        assert AgentProvider(anthropic_key).model == "anthropic:claude-3-5-sonnet-latest"
        assert AgentProvider(anthropic_key, model="claude-3-opus").model == "anthropic:claude-3-opus"

        google = APIKey(key="g-key", provider="google", tier=APITier.FREE)
        assert AgentProvider(google, model="gemini-2.0-flash").model == "google-gla:gemini-2.0-flash"

    @pytest.mark.asyncio
    async def test_analyze_with_agent(self, anthropic_key, request_for):
        payload = AnalysisPayload(
            commit_message="Fix crash on empty diff",
            action="create-branch",
            confidence=0.75,
            reasoning="Unrelated to current branch",
            branch_name="fix/empty-diff",
        )
        agent = MagicMock()
        agent.run = AsyncMock(return_value=_agent_result(payload))
        provider = AgentProvider(anthropic_key, analysis_agent=agent)

        response = await provider.analyze(request_for(anthropic_key))

        assert response.decision.action == ActionType.CREATE_BRANCH
        assert response.decision.branch_name == "fix/empty-diff"
        assert response.tokens_used == 25
        assert response.model == "anthropic:claude-3-5-sonnet-latest"
        prompt = agent.run.call_args[0][0]
        assert "Repository: /repo" in prompt

    @pytest.mark.asyncio
    async def test_agent_http_errors_are_classified(self, anthropic_key, request_for):
        agent = MagicMock()
        agent.run = AsyncMock(side_effect=ModelHTTPError(status_code=503, model_name="claude", body="overloaded"))
        sleep = SleepRecorder()
        provider = AgentProvider(anthropic_key, analysis_agent=agent, sleep=sleep)

        with pytest.raises(AnalysisFailed):
            await provider.analyze(request_for(anthropic_key))

        assert agent.run.await_count == 3
        assert sleep.delays == [1, 2]

    @pytest.mark.asyncio
    async def test_agent_rate_limit(self, anthropic_key, request_for):
        agent = MagicMock()
        agent.run = AsyncMock(
            side_effect=ModelHTTPError(status_code=429, model_name="claude", body={"error": {"message": "limit"}})
        )
        provider = AgentProvider(anthropic_key, analysis_agent=agent, sleep=SleepRecorder())

        with pytest.raises(RateLimitError):
            await provider.analyze(request_for(anthropic_key))

        assert agent.run.await_count == 1

    @pytest.mark.asyncio
    async def test_merge_message_with_agent(self, anthropic_key):
        payload = MergeMessagePayload(merge_message="Add login", strategy="fast-forward", reasoning="Linear")
        agent = MagicMock()
        agent.run = AsyncMock(return_value=_agent_result(payload))
        provider = AgentProvider(anthropic_key, merge_agent=agent)
        request = MergeMessageRequest(
            source_branch="feature/login", target_branch="main", commits=("One",), api_key=anthropic_key
        )

        response = await provider.generate_merge_message(request)

        assert response.merge_message.title == "Add login"
        assert response.suggested_strategy == MergeStrategy.FAST_FORWARD

"""LLM providers.

All providers share the retry policy in :class:`LLMProvider`: transient
failures are retried with exponential backoff, rate limits are reported
straight away, and everything else aborts on the first attempt.
"""

import asyncio
import json
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx
from pydantic import ValidationError
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior

from .errors import (
    AnalysisFailed,
    ProviderError,
    RateLimitError,
    ResponseValidationError,
    TransientError,
)
from .mapper import (
    decision_from_payload,
    merge_message_from_payload,
    parse_analysis,
    parse_merge_message,
)
from .models import APIKey, APITier
from .prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    MERGE_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_merge_message_prompt,
)
from .schemas import (
    ANALYSIS_SCHEMA,
    ANALYSIS_SCHEMA_NAME,
    MERGE_MESSAGE_SCHEMA,
    MERGE_MESSAGE_SCHEMA_NAME,
    AnalysisPayload,
    AnalysisRequest,
    AnalysisResponse,
    ChatCompletion,
    MergeMessagePayload,
    MergeMessageRequest,
    MergeMessageResponse,
    response_format,
)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_MAX_ATTEMPTS = 3
RATE_LIMIT_RETRY_AFTER = 60
RETRYABLE_STATUS_CODES = (500, 502, 503)
FREE_TIER_LIMIT_MESSAGE = (
    "Rate limit reached. Please wait a moment or upgrade to a pro API key for higher limits."
)


def error_from_status(status_code: int, body: str) -> Exception:
    """Classify a non-200 API response.

    429 is always a rate limit. 500, 502 and 503 are transient. Anything
    else is a provider error that is not retried.
    """
    message = None
    try:
        data = json.loads(body)
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message") or None
    except ValueError:
        message = None

    if message:
        text = f"API error ({status_code}): {message}"
    else:
        snippet = body if len(body) <= 500 else body[:500] + "..."
        text = f"API error: status code {status_code}, body: {snippet}"

    if status_code == 429:
        return RateLimitError(message or text, retry_after=RATE_LIMIT_RETRY_AFTER)
    if status_code in RETRYABLE_STATUS_CODES:
        return TransientError(text, status_code=status_code)
    return ProviderError(text, status_code=status_code)


class LLMProvider(ABC):
    """Base class for providers that turn requests into decisions."""

    name = "base"

    def __init__(
        self,
        api_key: APIKey,
        model: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Sleep] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_attempts = max(1, max_attempts)
        self.sleep = sleep or asyncio.sleep

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        last_error: Optional[TransientError] = None
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except TransientError as e:
                if "rate limit" in e.message.lower() and self.api_key.is_free:
                    raise RateLimitError(FREE_TIER_LIMIT_MESSAGE, RATE_LIMIT_RETRY_AFTER) from e
                last_error = e
                if attempt < self.max_attempts - 1:
                    await self.sleep(2 ** attempt)
        raise AnalysisFailed(self.max_attempts, last_error)

    async def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        """Ask the model how to commit the pending changes."""
        started = time.monotonic()
        response = await self._with_retry(lambda: self._analyze_once(request))
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return response.model_copy(update={"processing_time_ms": elapsed_ms})

    async def generate_merge_message(self, request: MergeMessageRequest) -> MergeMessageResponse:
        """Ask the model for a merge commit message and strategy."""
        return await self._with_retry(lambda: self._merge_message_once(request))

    async def detect_tier(self) -> APITier:
        # Tiers cannot be detected from the API; the configured tier is used.
        return APITier.FREE

    @abstractmethod
    async def _analyze_once(self, request: AnalysisRequest) -> AnalysisResponse:
        pass

    @abstractmethod
    async def _merge_message_once(self, request: MergeMessageRequest) -> MergeMessageResponse:
        pass

    @abstractmethod
    async def validate_key(self) -> None:
        """Raise if the API key is rejected by the provider."""
        pass


class CerebrasProvider(LLMProvider):
    """OpenAI-compatible chat completions with JSON schema output."""

    name = "cerebras"
    DEFAULT_BASE_URL = "https://api.cerebras.ai/v1"
    DEFAULT_MODEL = "llama-3.3-70b"
    MAX_COMPLETION_TOKENS = 1000
    TEMPERATURE = 0.7

    def __init__(
        self,
        api_key: APIKey,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Sleep] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model or self.DEFAULT_MODEL, max_attempts, sleep)
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _body(self, system_prompt: str, prompt: str, schema_name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "response_format": response_format(schema_name, schema),
            "max_completion_tokens": self.MAX_COMPLETION_TOKENS,
            "temperature": self.TEMPERATURE,
        }

    async def _post(self, body: Dict[str, Any]) -> ChatCompletion:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key.key}",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientError(f"request timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"connection error: {e}") from e

        if response.status_code != 200:
            raise error_from_status(response.status_code, response.text)

        try:
            return ChatCompletion.model_validate(response.json())
        except ValueError as e:
            raise ResponseValidationError(f"failed to parse response: {e}") from e

    @staticmethod
    def _content(completion: ChatCompletion) -> str:
        if not completion.choices:
            raise ResponseValidationError("no choices in response")
        content = completion.choices[0].message.content
        if not content:
            raise ResponseValidationError("empty response content")
        return content

    async def _analyze_once(self, request: AnalysisRequest) -> AnalysisResponse:
        body = self._body(
            ANALYSIS_SYSTEM_PROMPT,
            build_analysis_prompt(request),
            ANALYSIS_SCHEMA_NAME,
            ANALYSIS_SCHEMA,
        )
        completion = await self._post(body)
        decision = parse_analysis(
            self._content(completion),
            request.use_conventional,
            request.merge_target_branch,
        )
        return AnalysisResponse(
            decision=decision,
            tokens_used=completion.usage.total_tokens,
            model=completion.model,
        )

    async def _merge_message_once(self, request: MergeMessageRequest) -> MergeMessageResponse:
        body = self._body(
            MERGE_SYSTEM_PROMPT,
            build_merge_message_prompt(request),
            MERGE_MESSAGE_SCHEMA_NAME,
            MERGE_MESSAGE_SCHEMA,
        )
        completion = await self._post(body)
        message, strategy, reasoning = parse_merge_message(self._content(completion))
        return MergeMessageResponse(
            merge_message=message,
            suggested_strategy=strategy,
            reasoning=reasoning,
            tokens_used=completion.usage.total_tokens,
            model=completion.model,
        )

    async def validate_key(self) -> None:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": "test"}],
            "max_completion_tokens": 10,
        }
        await self._post(body)


class AgentProvider(LLMProvider):
    """Providers reached through pydantic-ai agents (Claude, Gemini, OpenAI)."""

    PREFIXES = {
        "anthropic": "anthropic",
        "google": "google-gla",
        "openai": "openai",
    }
    KEY_ENV_VARS = {
        "anthropic": "ANTHROPIC_API_KEY",
        "google": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
    }
    DEFAULT_MODELS = {
        "anthropic": "claude-3-5-sonnet-latest",
        "google": "gemini-1.5-flash",
        "openai": "gpt-4o-mini",
    }

    def __init__(
        self,
        api_key: APIKey,
        model: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Sleep] = None,
        analysis_agent: Optional[Agent] = None,
        merge_agent: Optional[Agent] = None,
    ):
        self.name = api_key.provider
        prefix = self.PREFIXES.get(self.name, self.name)
        model = model or self.DEFAULT_MODELS.get(self.name, "")
        if ":" not in model:
            model = f"{prefix}:{model}"
        super().__init__(api_key, model, max_attempts, sleep)
        self._analysis_agent = analysis_agent
        self._merge_agent = merge_agent

    def _export_key(self) -> None:
        env_var = self.KEY_ENV_VARS.get(self.name)
        if env_var:
            os.environ.setdefault(env_var, self.api_key.key)

    @property
    def analysis_agent(self) -> Agent:
        if self._analysis_agent is None:
            self._export_key()
            self._analysis_agent = Agent(
                model=self.model,
                output_type=AnalysisPayload,
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
            )
        return self._analysis_agent

    @property
    def merge_agent(self) -> Agent:
        if self._merge_agent is None:
            self._export_key()
            self._merge_agent = Agent(
                model=self.model,
                output_type=MergeMessagePayload,
                system_prompt=MERGE_SYSTEM_PROMPT,
            )
        return self._merge_agent

    async def _run(self, agent: Agent, prompt: str):
        try:
            return await agent.run(prompt)
        except ModelHTTPError as e:
            body = json.dumps(e.body) if isinstance(e.body, (dict, list)) else str(e.body or e)
            raise error_from_status(e.status_code, body) from e
        except UnexpectedModelBehavior as e:
            raise ResponseValidationError(f"unexpected model output: {e}") from e
        except httpx.TimeoutException as e:
            raise TransientError(f"request timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"connection error: {e}") from e

    @staticmethod
    def _total_tokens(result) -> int:
        try:
            return result.usage().total_tokens or 0
        except (AttributeError, TypeError):
            return 0

    async def _analyze_once(self, request: AnalysisRequest) -> AnalysisResponse:
        result = await self._run(self.analysis_agent, build_analysis_prompt(request))
        payload = result.output
        if not isinstance(payload, AnalysisPayload):
            try:
                payload = AnalysisPayload.model_validate(payload)
            except ValidationError as e:
                raise ResponseValidationError(f"structured output does not match schema: {e}") from e
        decision = decision_from_payload(payload, request.use_conventional, request.merge_target_branch)
        return AnalysisResponse(
            decision=decision,
            tokens_used=self._total_tokens(result),
            model=self.model,
        )

    async def _merge_message_once(self, request: MergeMessageRequest) -> MergeMessageResponse:
        result = await self._run(self.merge_agent, build_merge_message_prompt(request))
        payload = result.output
        if not isinstance(payload, MergeMessagePayload):
            try:
                payload = MergeMessagePayload.model_validate(payload)
            except ValidationError as e:
                raise ResponseValidationError(f"structured output does not match schema: {e}") from e
        message, strategy, reasoning = merge_message_from_payload(payload)
        return MergeMessageResponse(
            merge_message=message,
            suggested_strategy=strategy,
            reasoning=reasoning,
            tokens_used=self._total_tokens(result),
            model=self.model,
        )

    async def validate_key(self) -> None:
        self._export_key()
        await self._run(Agent(model=self.model), "test")

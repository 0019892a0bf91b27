"""Factory for creating LLM providers."""
from typing import Callable, Dict, List, Optional

from .errors import ProviderNotFound
from .models import APIKey
from .providers import AgentProvider, CerebrasProvider, LLMProvider

ProviderConstructor = Callable[..., LLMProvider]


def _cerebras(api_key: APIKey, model: Optional[str] = None, base_url: Optional[str] = None,
              max_attempts: int = 3, timeout: float = 30.0) -> LLMProvider:
    return CerebrasProvider(
        api_key,
        model=model,
        base_url=base_url,
        timeout=timeout,
        max_attempts=max_attempts,
    )


def _agent(api_key: APIKey, model: Optional[str] = None, base_url: Optional[str] = None,
           max_attempts: int = 3, timeout: float = 30.0) -> LLMProvider:
    return AgentProvider(api_key, model=model, max_attempts=max_attempts)


class ProviderFactory:
    """Creates providers by name.

    ``cerebras`` talks to the Cerebras chat completions API directly; the
    other built-in names go through pydantic-ai agents. Additional providers
    can be added with :meth:`register`.
    """

    def __init__(self):
        self._constructors: Dict[str, ProviderConstructor] = {}
        self.register("cerebras", _cerebras)
        for name in ("anthropic", "google", "openai"):
            self.register(name, _agent)

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        self._constructors[name] = constructor

    @property
    def names(self) -> List[str]:
        return sorted(self._constructors)

    def create(
        self,
        name: str,
        api_key: APIKey,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_attempts: int = 3,
        timeout: float = 30.0,
    ) -> LLMProvider:
        constructor = self._constructors.get(name)
        if constructor is None:
            raise ProviderNotFound(name)
        return constructor(
            api_key,
            model=model,
            base_url=base_url,
            max_attempts=max_attempts,
            timeout=timeout,
        )

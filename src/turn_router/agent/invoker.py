"""Model invocation seam used by the classifier's model stage."""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage

from turn_router.config import ModelSettings

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
_OPENAI_COMPATIBLE_PROVIDERS = (None, "openai", "local")


class ModelInvoker(Protocol):
    """Awaitable LLM transport.

    Implementations return the raw text of the model's reply and raise on
    transport failure. They must not mutate shared state when they fail.
    """

    async def __call__(
        self,
        messages: Sequence[BaseMessage],
        *,
        temperature: float,
        max_tokens: int,
        settings: ModelSettings | None = None,
    ) -> str: ...


ChatModelFactory = Callable[[ModelSettings], BaseChatModel]


class LangChainModelInvoker:
    """Adapts a LangChain chat model to the `ModelInvoker` protocol.

    `llm` serves requests without model settings. When settings are passed and
    a `model_factory` is configured, a model is built from the factory instead.
    Models for the `max_cached_models` most recently used settings are reused.
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        *,
        model_factory: ChatModelFactory | None = None,
        max_cached_models: int = 8,
    ) -> None:
        if llm is None and model_factory is None:
            raise ValueError("Either llm or model_factory is required.")
        self.llm = llm
        self.model_factory = model_factory
        self._build_model: Callable[[ModelSettings], BaseChatModel] | None = None
        if model_factory is not None:

            def _build(settings: ModelSettings) -> BaseChatModel:
                logger.debug("Building chat model for settings %s", settings)
                return model_factory(settings)

            self._build_model = functools.lru_cache(maxsize=max_cached_models)(_build)

    async def __call__(
        self,
        messages: Sequence[BaseMessage],
        *,
        temperature: float,
        max_tokens: int,
        settings: ModelSettings | None = None,
    ) -> str:
        model = self._resolve(settings)
        bound = model.bind(temperature=temperature, max_tokens=max_tokens)
        response = await bound.ainvoke(list(messages))
        return _message_text(getattr(response, "content", response))

    def _resolve(self, settings: ModelSettings | None) -> BaseChatModel:
        if settings is not None and self.model_factory is not None:
            return self._from_factory(settings)
        if self.llm is not None:
            return self.llm
        return self._from_factory(settings or ModelSettings())

    def _from_factory(self, settings: ModelSettings) -> BaseChatModel:
        assert self._build_model is not None
        return self._build_model(settings)


def create_openai_model(settings: ModelSettings) -> BaseChatModel:
    """Build a `ChatOpenAI` model, honoring a local OpenAI-compatible endpoint."""

    from langchain_openai import ChatOpenAI

    if settings.provider not in _OPENAI_COMPATIBLE_PROVIDERS:
        raise ValueError(f"Unsupported model provider: {settings.provider}")
    kwargs: dict[str, Any] = {
        "model": settings.selected_model or os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        "temperature": 0,
    }
    if settings.local_model_url:
        kwargs["base_url"] = settings.local_model_url
        # Local servers usually ignore the key, but the client insists on one.
        kwargs["api_key"] = os.getenv("OPENAI_API_KEY") or "not-needed"
    return ChatOpenAI(**kwargs)


def create_default_invoker() -> LangChainModelInvoker | None:
    """Return an OpenAI-backed invoker, or None when no API key is configured."""
    if not os.getenv("OPENAI_API_KEY"):
        return None
    return LangChainModelInvoker(
        create_openai_model(ModelSettings()),
        model_factory=create_openai_model,
    )


def _message_text(content: Any) -> str:
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)

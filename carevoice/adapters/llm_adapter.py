"""
LLM Adapter - Abstract interface and provider clients for text generation.

The conversation responder talks to language models only through
LLMAdapter, so providers can be swapped by configuration.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import structlog

from carevoice.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass
class LLMMessage:
    """Chat message for LLM."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """Response from LLM completion."""

    text: str
    finish_reason: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)


class LLMAdapter(ABC):
    """Abstract base class for LLM adapters."""

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: List of chat messages (system, user, assistant)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0-1)
            json_mode: Ask the provider to return a single JSON object

        Returns:
            LLMResponse with generated text and metadata
        """

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if the LLM service is available."""


class OpenAIAdapter(LLMAdapter):
    """OpenAI chat completions adapter."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini") -> None:
        from openai import AsyncOpenAI

        self.model = model
        self.client = AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        kwargs = {
            "model": self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "max_tokens": max_tokens or 1024,
            "temperature": temperature if temperature is not None else 0.7,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error("openai_error", model=self.model, error=str(e))
            raise

        choice = response.choices[0]
        usage = response.usage

        logger.debug(
            "openai_completion",
            model=self.model,
            tokens=usage.total_tokens if usage else 0,
            finish_reason=choice.finish_reason,
        )

        return LLMResponse(
            text=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
            model=response.model,
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
        )

    async def is_available(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning("openai_unavailable", error=str(e))
            return False


class AnthropicAdapter(LLMAdapter):
    """Anthropic Claude messages adapter."""

    def __init__(self, api_key: str, model: str = "claude-3-5-sonnet-20241022") -> None:
        from anthropic import AsyncAnthropic

        self.model = model
        self.client = AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        # Anthropic takes the system prompt separately from the chat turns
        system_parts = [msg.content for msg in messages if msg.role == "system"]
        chat_messages = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
            if msg.role != "system"
        ]

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or 1024,
            "messages": chat_messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await self.client.messages.create(**kwargs)
        except Exception as e:
            logger.error("anthropic_error", model=self.model, error=str(e))
            raise

        text = "".join(block.text for block in response.content if hasattr(block, "text"))

        logger.debug(
            "anthropic_completion",
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

        return LLMResponse(
            text=text,
            finish_reason=response.stop_reason or "end_turn",
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
        )

    async def is_available(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning("anthropic_unavailable", error=str(e))
            return False


def create_llm_adapter(settings: Settings | None = None, provider: str | None = None) -> LLMAdapter | None:
    """
    Create the LLM adapter for the configured provider.

    Returns None for the "mock" provider or when the provider's API key
    is missing; callers then fall back to the rule-based responder.
    """
    settings = settings or get_settings()
    provider = provider or settings.ai_provider

    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("openai_api_key_missing", fallback="mock")
            return None
        return OpenAIAdapter(api_key=settings.openai_api_key, model=settings.llm_model)

    if provider == "anthropic":
        if not settings.anthropic_api_key:
            logger.warning("anthropic_api_key_missing", fallback="mock")
            return None
        return AnthropicAdapter(api_key=settings.anthropic_api_key, model=settings.llm_model)

    if provider != "mock":
        logger.warning("unknown_ai_provider", provider=provider, fallback="mock")
    return None

"""
Conversation responders - produce the assistant's reply to a user turn.

A responder receives the new message plus the full ordered history and
returns an AIResponse: the reply text, an optional audio reference and
optional sentiment/intent annotations that feed conversation analytics.
"""
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

import structlog

from carevoice.adapters.llm_adapter import LLMAdapter, LLMMessage, create_llm_adapter
from carevoice.adapters.speech import SpeechSynthesizer, create_speech_synthesizer
from carevoice.agent import DEFAULT_AGENT, AgentProfile
from carevoice.config import Settings, get_settings
from carevoice.models.schemas import Message

logger = structlog.get_logger()


@dataclass(frozen=True)
class AIResponse:
    """
    Reply produced for one user turn.

    Absent annotations are None / empty so that the metadata aggregator
    leaves the stored values unchanged.
    """

    message: str
    audio_url: Optional[str] = None
    sentiment: Optional[str] = None
    intents: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "intents", tuple(self.intents or ()))


class ConversationResponder(ABC):
    """Abstract base class for AI response services."""

    @abstractmethod
    async def respond(self, content: str, history: Sequence[Message]) -> AIResponse:
        """
        Generate the assistant reply.

        Args:
            content: The new user message
            history: Full ordered history, ending with the new user message

        Returns:
            AIResponse with reply text and optional annotations
        """

    async def is_available(self) -> bool:
        """Check if the responder can serve requests."""
        return True


class MockResponder(ConversationResponder):
    """
    Rule-based responder for development and testing.

    Replies come from the first matching pattern; intents are collected
    from every matching pattern so multi-topic messages carry all labels.
    """

    def __init__(self) -> None:
        self.call_count = 0
        self.last_history: list[Message] = []

        # Pattern: (regex, reply, sentiment, intents)
        self.patterns: list[tuple[str, str, str | None, tuple[str, ...]]] = [
            (
                r"\b(refund|money back|reimburse)",
                "I can help you with a refund. Could you share your order number?",
                "neutral",
                ("billing", "refund"),
            ),
            (
                r"\b(bill|billing|invoice|charge|payment|pricing|price|cost)",
                "Happy to look into your billing question. Which invoice or charge is this about?",
                None,
                ("billing",),
            ),
            (
                r"\b(terrible|awful|angry|frustrated|disappointed|worst|useless)",
                "I'm sorry this has been frustrating. Let's get it sorted out together.",
                "negative",
                ("complaint",),
            ),
            (
                r"\b(error|bug|crash|not working|broken|issue|problem)",
                "Let's troubleshoot that. Can you describe what happens right before the problem?",
                "neutral",
                ("technical_support",),
            ),
            (
                r"\b(cancel|unsubscribe|close my account)",
                "I can help with cancelling. May I ask what prompted the decision?",
                "neutral",
                ("cancellation",),
            ),
            (
                r"\b(thank|thanks|appreciate)",
                "You're welcome! Is there anything else I can help you with?",
                "positive",
                ("gratitude",),
            ),
            (
                r"\b(bye|goodbye|see you|take care)\b",
                "Goodbye! Keep pushing, and come back any time.",
                "positive",
                ("farewell",),
            ),
            (
                r"\b(hello|hi|hey|good morning|good afternoon|good evening)\b",
                "Hello! How can I help you today?",
                "positive",
                ("greeting",),
            ),
        ]

        self.default_response = (
            "I understand. Could you tell me a bit more so I can help you better?"
        )

    async def respond(self, content: str, history: Sequence[Message]) -> AIResponse:
        self.call_count += 1
        self.last_history = list(history)

        reply: str | None = None
        sentiment: str | None = None
        intents: list[str] = []

        for pattern, response, pattern_sentiment, pattern_intents in self.patterns:
            if not re.search(pattern, content, re.IGNORECASE):
                continue
            if reply is None:
                reply = response
            if sentiment is None:
                sentiment = pattern_sentiment
            intents.extend(i for i in pattern_intents if i not in intents)

        logger.debug(
            "mock_response",
            content_length=len(content),
            matched=reply is not None,
            intents=intents,
        )

        return AIResponse(
            message=reply or self.default_response,
            sentiment=sentiment or "neutral",
            intents=tuple(intents),
        )


REPLY_FORMAT_INSTRUCTIONS = """Respond ONLY with a JSON object of the form:
{"message": "<your reply to the user>", "sentiment": "<positive|neutral|negative>", "intents": ["<short_snake_case_label>", ...]}
"sentiment" describes the user's latest message. "intents" lists what the user is trying to achieve in their latest message; use an empty list when unclear."""


class LLMResponder(ConversationResponder):
    """
    Responder backed by a language model.

    Flow:
    1. Build prompt from persona instructions and recent history
    2. Ask the LLM for a JSON reply with annotations
    3. Parse the reply, falling back to raw text
    4. Optionally synthesize the reply to audio
    """

    def __init__(
        self,
        llm_adapter: LLMAdapter,
        agent: AgentProfile = DEFAULT_AGENT,
        synthesizer: SpeechSynthesizer | None = None,
        history_max_messages: int = 40,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        self.llm = llm_adapter
        self.agent = agent
        self.synthesizer = synthesizer
        self.history_max_messages = history_max_messages
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def respond(self, content: str, history: Sequence[Message]) -> AIResponse:
        messages = self._build_prompt(content, history)

        llm_response = await self.llm.complete(
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            json_mode=True,
        )

        reply = self._parse_response(llm_response.text)
        if not reply.message:
            raise ValueError("LLM returned an empty reply")

        audio_url = await self._synthesize(reply.message)

        logger.info(
            "llm_response_generated",
            model=llm_response.model,
            finish_reason=llm_response.finish_reason,
            reply_length=len(reply.message),
            has_audio=audio_url is not None,
        )

        return AIResponse(
            message=reply.message,
            audio_url=audio_url,
            sentiment=reply.sentiment,
            intents=reply.intents,
        )

    async def is_available(self) -> bool:
        return await self.llm.is_available()

    def _build_prompt(self, content: str, history: Sequence[Message]) -> list[LLMMessage]:
        messages = [
            LLMMessage(
                role="system",
                content=f"{self.agent.build_instructions()}\n\n{REPLY_FORMAT_INSTRUCTIONS}",
            )
        ]

        recent = list(history)[-self.history_max_messages:]
        messages.extend(LLMMessage(role=msg.role, content=msg.content) for msg in recent)

        # History normally ends with the new user turn already appended
        if not recent or recent[-1].role != "user" or recent[-1].content != content:
            messages.append(LLMMessage(role="user", content=content))

        return messages

    def _parse_response(self, text: str) -> AIResponse:
        """
        Parse the model output into an AIResponse.

        Accepts a bare JSON object or one wrapped in a ``` fence; anything
        else is used verbatim as the reply with no annotations.
        """
        cleaned = text.strip()
        fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", cleaned, re.DOTALL)
        if fenced:
            cleaned = fenced.group(1)

        try:
            data: Any = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning("llm_reply_not_json", reply_length=len(text))
            return AIResponse(message=text.strip())

        if not isinstance(data, dict) or not isinstance(data.get("message"), str):
            logger.warning("llm_reply_missing_message")
            return AIResponse(message=text.strip())

        sentiment = data.get("sentiment")
        if not isinstance(sentiment, str) or not sentiment.strip():
            sentiment = None

        raw_intents = data.get("intents")
        intents = (
            tuple(i.strip() for i in raw_intents if isinstance(i, str) and i.strip())
            if isinstance(raw_intents, list)
            else ()
        )

        return AIResponse(
            message=data["message"].strip(),
            sentiment=sentiment.strip() if sentiment else None,
            intents=intents,
        )

    async def _synthesize(self, text: str) -> str | None:
        if self.synthesizer is None:
            return None
        try:
            return await self.synthesizer.synthesize(text, voice=self.agent.voice_id)
        except Exception as e:
            # Voice is best effort; the text reply still goes out
            logger.warning("speech_synthesis_failed", error=str(e))
            return None


def create_responder(
    settings: Settings | None = None,
    agent: AgentProfile = DEFAULT_AGENT,
) -> ConversationResponder:
    """Create the responder for the configured AI provider."""
    settings = settings or get_settings()
    llm_adapter = create_llm_adapter(settings)

    if llm_adapter is None:
        return MockResponder()

    return LLMResponder(
        llm_adapter=llm_adapter,
        agent=agent,
        synthesizer=create_speech_synthesizer(settings),
        history_max_messages=settings.history_max_messages,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )

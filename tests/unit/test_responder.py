"""
Unit Tests for AI Responders

Tests for the rule-based responder, LLM reply parsing and
speech synthesis.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from carevoice.adapters import (
    AIResponse,
    LLMAdapter,
    LLMMessage,
    LLMResponder,
    LLMResponse,
    MockResponder,
    OpenAIAdapter,
    OpenAISpeechSynthesizer,
    SpeechSynthesizer,
    create_llm_adapter,
    create_responder,
)
from carevoice.agent import DEFAULT_AGENT, AgentProfile
from carevoice.config import Settings
from carevoice.models import Message


class FakeLLM(LLMAdapter):
    """LLM adapter returning canned text and recording prompts."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.prompts: list[list[LLMMessage]] = []
        self.json_mode: bool | None = None

    async def complete(self, messages, max_tokens=None, temperature=None, json_mode=False) -> LLMResponse:
        self.prompts.append(list(messages))
        self.json_mode = json_mode
        return LLMResponse(text=self.text, finish_reason="stop", model="fake-model")

    async def is_available(self) -> bool:
        return True


class FailingSynthesizer(SpeechSynthesizer):
    async def synthesize(self, text: str, voice: str) -> str:
        raise RuntimeError("tts down")


class RecordingSynthesizer(SpeechSynthesizer):
    def __init__(self) -> None:
        self.voices: list[str] = []

    async def synthesize(self, text: str, voice: str) -> str:
        self.voices.append(voice)
        return "/uploads/reply-test.mp3"


def _history(*pairs):
    return [Message(role=role, content=content) for role, content in pairs]


# =============================================================================
# AIResponse Tests
# =============================================================================


class TestAIResponse:
    """Tests for the AIResponse value object."""

    def test_intents_normalized_to_tuple(self):
        """Test that list intents become a tuple."""
        response = AIResponse(message="ok", intents=["billing"])
        assert response.intents == ("billing",)

    def test_defaults(self):
        """Test that annotations default to absent."""
        response = AIResponse(message="ok")
        assert response.audio_url is None
        assert response.sentiment is None
        assert response.intents == ()


# =============================================================================
# Mock Responder Tests
# =============================================================================


class TestMockResponder:
    """Tests for MockResponder."""

    @pytest.mark.asyncio
    async def test_greeting(self):
        """Test the greeting reply."""
        responder = MockResponder()
        response = await responder.respond("Hi", _history(("user", "Hi")))

        assert response.message == "Hello! How can I help you today?"
        assert response.sentiment == "positive"
        assert response.intents == ("greeting",)

    @pytest.mark.asyncio
    async def test_refund_carries_billing(self):
        """Test that a refund request is labelled billing and refund."""
        responder = MockResponder()
        response = await responder.respond("I want my money back for this bill", [])

        assert response.intents == ("billing", "refund")
        assert "refund" in response.message

    @pytest.mark.asyncio
    async def test_billing_only_defaults_to_neutral(self):
        """Test a pattern without its own sentiment."""
        responder = MockResponder()
        response = await responder.respond("Question about my invoice", [])

        assert response.intents == ("billing",)
        assert response.sentiment == "neutral"

    @pytest.mark.asyncio
    async def test_complaint_is_negative(self):
        """Test negative sentiment for complaints."""
        responder = MockResponder()
        response = await responder.respond("This is terrible", [])

        assert response.sentiment == "negative"
        assert "complaint" in response.intents

    @pytest.mark.asyncio
    async def test_unmatched_falls_back(self):
        """Test the default reply."""
        responder = MockResponder()
        response = await responder.respond("Tell me about graph theory", [])

        assert response.message == responder.default_response
        assert response.intents == ()

    @pytest.mark.asyncio
    async def test_records_history(self):
        """Test call tracking."""
        responder = MockResponder()
        history = _history(("user", "a"), ("assistant", "b"), ("user", "c"))

        await responder.respond("c", history)

        assert responder.call_count == 1
        assert [m.content for m in responder.last_history] == ["a", "b", "c"]


# =============================================================================
# LLM Responder Tests
# =============================================================================


class TestLLMResponder:
    """Tests for LLMResponder."""

    @pytest.mark.asyncio
    async def test_parses_json_reply(self):
        """Test a well-formed JSON reply."""
        llm = FakeLLM('{"message": "Let\'s plan.", "sentiment": "positive", "intents": ["career_advice"]}')
        responder = LLMResponder(llm)

        response = await responder.respond("Help me", _history(("user", "Help me")))

        assert response.message == "Let's plan."
        assert response.sentiment == "positive"
        assert response.intents == ("career_advice",)
        assert llm.json_mode is True

    @pytest.mark.asyncio
    async def test_parses_fenced_reply(self):
        """Test a JSON reply wrapped in a code fence."""
        llm = FakeLLM('```json\n{"message": "Fenced", "intents": ["x", "", 3]}\n```')
        responder = LLMResponder(llm)

        response = await responder.respond("hi", [])

        assert response.message == "Fenced"
        assert response.sentiment is None
        assert response.intents == ("x",)

    @pytest.mark.asyncio
    async def test_plain_text_reply(self):
        """Test that non-JSON output is used verbatim."""
        responder = LLMResponder(FakeLLM("  Just text.  "))
        response = await responder.respond("hi", [])

        assert response.message == "Just text."
        assert response.sentiment is None
        assert response.intents == ()

    @pytest.mark.asyncio
    async def test_json_without_message(self):
        """Test a JSON object lacking a message field."""
        responder = LLMResponder(FakeLLM('{"reply": "nope"}'))
        response = await responder.respond("hi", [])

        assert response.message == '{"reply": "nope"}'

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self):
        """Test that an empty reply is an error."""
        responder = LLMResponder(FakeLLM('{"message": "   "}'))

        with pytest.raises(ValueError):
            await responder.respond("hi", [])

    @pytest.mark.asyncio
    async def test_prompt_structure(self):
        """Test system prompt and history ordering."""
        llm = FakeLLM('{"message": "ok"}')
        responder = LLMResponder(llm)
        history = _history(("user", "first"), ("assistant", "reply"), ("user", "second"))

        await responder.respond("second", history)

        prompt = llm.prompts[0]
        assert prompt[0].role == "system"
        assert DEFAULT_AGENT.company in prompt[0].content
        assert [(m.role, m.content) for m in prompt[1:]] == [
            ("user", "first"),
            ("assistant", "reply"),
            ("user", "second"),
        ]

    @pytest.mark.asyncio
    async def test_prompt_trims_history(self):
        """Test the history window."""
        llm = FakeLLM('{"message": "ok"}')
        responder = LLMResponder(llm, history_max_messages=2)
        history = _history(("user", "1"), ("assistant", "2"), ("user", "3"), ("assistant", "4"), ("user", "5"))

        await responder.respond("5", history)

        assert [m.content for m in llm.prompts[0][1:]] == ["4", "5"]

    @pytest.mark.asyncio
    async def test_prompt_appends_missing_user_turn(self):
        """Test that the new message is added when history lacks it."""
        llm = FakeLLM('{"message": "ok"}')
        responder = LLMResponder(llm)

        await responder.respond("new", _history(("user", "old"), ("assistant", "reply")))

        assert llm.prompts[0][-1].content == "new"
        assert llm.prompts[0][-1].role == "user"

    @pytest.mark.asyncio
    async def test_speech_uses_agent_voice(self):
        """Test that replies are voiced with the persona's voice."""
        synthesizer = RecordingSynthesizer()
        responder = LLMResponder(FakeLLM('{"message": "ok"}'), synthesizer=synthesizer)

        response = await responder.respond("hi", [])

        assert response.audio_url == "/uploads/reply-test.mp3"
        assert synthesizer.voices == [DEFAULT_AGENT.voice_id]

    @pytest.mark.asyncio
    async def test_speech_failure_keeps_text(self):
        """Test that synthesis errors degrade to a text-only reply."""
        responder = LLMResponder(FakeLLM('{"message": "ok"}'), synthesizer=FailingSynthesizer())

        response = await responder.respond("hi", [])

        assert response.message == "ok"
        assert response.audio_url is None


# =============================================================================
# Provider Tests
# =============================================================================


class TestOpenAISpeechSynthesizer:
    """Tests for OpenAISpeechSynthesizer."""

    @pytest.mark.asyncio
    async def test_writes_audio_file(self, tmp_path):
        """Test that synthesized audio is stored and addressed by URL."""
        synthesizer = OpenAISpeechSynthesizer(api_key="sk-test", audio_dir=str(tmp_path / "audio"))
        synthesizer.client = MagicMock()
        synthesizer.client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"ID3data"))

        url = await synthesizer.synthesize("Hello", voice="onyx")

        filename = url.rsplit("/", 1)[-1]
        assert url.startswith("/uploads/reply-")
        assert (tmp_path / "audio" / filename).read_bytes() == b"ID3data"
        synthesizer.client.audio.speech.create.assert_awaited_once_with(model="tts-1", voice="onyx", input="Hello")


class TestCreateLLMAdapter:
    """Tests for provider selection."""

    def test_mock_provider(self):
        """Test that the mock provider has no adapter."""
        assert create_llm_adapter(Settings(ai_provider="mock")) is None

    def test_unknown_provider(self):
        """Test that unknown providers fall back to mock."""
        assert create_llm_adapter(Settings(), provider="unknown") is None

    def test_openai_without_key(self):
        """Test that a missing API key falls back to mock."""
        assert create_llm_adapter(Settings(ai_provider="openai", openai_api_key="")) is None

    def test_openai_from_given_settings(self):
        """Test that the adapter follows the settings passed in."""
        adapter = create_llm_adapter(
            Settings(ai_provider="openai", openai_api_key="sk-test", llm_model="gpt-test")
        )

        assert isinstance(adapter, OpenAIAdapter)
        assert adapter.model == "gpt-test"


class TestCreateResponder:
    """Tests for responder selection."""

    def test_mock(self):
        """Test the rule-based fallback."""
        assert isinstance(create_responder(Settings(ai_provider="mock")), MockResponder)

    def test_llm_from_given_settings(self, tmp_path):
        """Test that LLM, speech and history options come from the settings passed in."""
        responder = create_responder(
            Settings(
                ai_provider="openai",
                openai_api_key="sk-test",
                history_max_messages=6,
                llm_max_tokens=123,
                speech_enabled=True,
                audio_dir=str(tmp_path),
            )
        )

        assert isinstance(responder, LLMResponder)
        assert isinstance(responder.synthesizer, OpenAISpeechSynthesizer)
        assert responder.history_max_messages == 6
        assert responder.max_tokens == 123

    def test_speech_disabled(self):
        """Test that voice replies are off unless enabled."""
        responder = create_responder(
            Settings(ai_provider="openai", openai_api_key="sk-test", speech_enabled=False)
        )

        assert isinstance(responder, LLMResponder)
        assert responder.synthesizer is None


# =============================================================================
# Agent Tests
# =============================================================================


class TestAgentProfile:
    """Tests for persona instructions."""

    def test_instructions_include_persona(self):
        """Test that every persona section is rendered."""
        instructions = DEFAULT_AGENT.build_instructions()

        assert instructions.startswith("You are Sigma")
        assert DEFAULT_AGENT.personality in instructions
        assert f"About {DEFAULT_AGENT.company}:" in instructions
        assert DEFAULT_AGENT.prompts[0] in instructions

    def test_optional_sections_omitted(self):
        """Test a minimal persona."""
        agent = AgentProfile(
            name="Test",
            company="Acme",
            personality="",
            company_info="",
            system_prompt="You are a test agent.",
        )

        assert agent.build_instructions() == "You are a test agent."

"""Adapters for external services (LLM, speech, AI responders)."""
from .llm_adapter import AnthropicAdapter, LLMAdapter, LLMMessage, LLMResponse, OpenAIAdapter, create_llm_adapter
from .responder import AIResponse, ConversationResponder, LLMResponder, MockResponder, create_responder
from .speech import OpenAISpeechSynthesizer, SpeechSynthesizer, create_speech_synthesizer

__all__ = [
    "AIResponse",
    "AnthropicAdapter",
    "ConversationResponder",
    "LLMAdapter",
    "LLMMessage",
    "LLMResponder",
    "LLMResponse",
    "MockResponder",
    "OpenAIAdapter",
    "OpenAISpeechSynthesizer",
    "SpeechSynthesizer",
    "create_llm_adapter",
    "create_responder",
    "create_speech_synthesizer",
]

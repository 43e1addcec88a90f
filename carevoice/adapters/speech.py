"""
Speech synthesis for voice replies.

Synthesized audio is written to local storage and referenced from the
assistant message by URL.
"""
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import structlog

from carevoice.config import Settings, get_settings

logger = structlog.get_logger()


class SpeechSynthesizer(ABC):
    """Turns reply text into an audio artifact."""

    @abstractmethod
    async def synthesize(self, text: str, voice: str) -> str:
        """Render text to audio and return the artifact's URL."""


class OpenAISpeechSynthesizer(SpeechSynthesizer):
    """OpenAI text-to-speech writing MP3 files under a local directory."""

    def __init__(
        self,
        api_key: str,
        audio_dir: str,
        url_prefix: str = "/uploads",
        model: str = "tts-1",
    ) -> None:
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.audio_dir = Path(audio_dir)
        self.url_prefix = url_prefix.rstrip("/")

    async def synthesize(self, text: str, voice: str) -> str:
        response = await self.client.audio.speech.create(
            model=self.model,
            voice=voice,
            input=text,
        )

        self.audio_dir.mkdir(parents=True, exist_ok=True)
        filename = f"reply-{uuid.uuid4().hex}.mp3"
        file_path = self.audio_dir / filename

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(response.content)

        logger.debug("speech_synthesized", file=filename, text_length=len(text), voice=voice)
        return f"{self.url_prefix}/{filename}"


def create_speech_synthesizer(settings: Settings | None = None) -> SpeechSynthesizer | None:
    """Create the configured synthesizer, or None when voice replies are off."""
    settings = settings or get_settings()

    if not settings.speech_enabled:
        return None
    if not settings.openai_api_key:
        logger.warning("speech_disabled_no_api_key")
        return None

    return OpenAISpeechSynthesizer(
        api_key=settings.openai_api_key,
        audio_dir=settings.audio_dir,
        url_prefix=settings.audio_url_prefix,
        model=settings.tts_model,
    )

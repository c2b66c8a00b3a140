"""Speech-to-text service."""
import logging
from typing import Optional
from openai import AsyncOpenAI
from app.core.config import settings

logger = logging.getLogger(__name__)


class SpeechToTextService:
    """Service for converting speech to text."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)

    async def transcribe_audio(
        self, audio_data: bytes, filename: str = "voice.wav"
    ) -> str:
        """
        Transcribe audio to text using OpenAI Whisper.

        Args:
            audio_data: Raw audio bytes (Twilio recordings are fetched as WAV)
            filename: Name hint that tells Whisper the container format

        Returns:
            Transcribed text, stripped. May be empty when nothing was said.
        """
        try:
            transcript = await self.client.audio.transcriptions.create(
                model="whisper-1",
                file=(filename, audio_data, "audio/wav"),
            )
        except Exception as e:
            raise Exception(f"Transcription failed: {str(e)}")

        text = (transcript.text or "").strip()
        logger.debug(f"[STT] Transcribed {len(audio_data)} bytes -> {len(text)} chars")
        return text

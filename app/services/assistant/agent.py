"""LLM assistant service."""
import logging
from typing import Optional
from openai import AsyncOpenAI
from app.core.config import settings

logger = logging.getLogger(__name__)


class AssistantService:
    """Service that turns a prompt into a spoken reply."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.openai_model

    async def invoke(self, prompt: str) -> str:
        """
        Send a fully built prompt to the model.

        Returns:
            Reply text, stripped. Errors from the API propagate to the caller.
        """
        logger.info(f"[ASSISTANT] Calling {self.model}: {prompt[-80:]!r}")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.7,
        )

        content = (response.choices[0].message.content or "").strip()
        logger.info(f"[ASSISTANT] Reply received ({len(content)} chars)")
        return content

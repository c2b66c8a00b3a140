"""Assistant prompt templates."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytz

from app.core.config import settings

logger = logging.getLogger(__name__)

PHONE_INSTRUCTIONS = [
    "You are a personal AI assistant on a phone call. Keep responses to 2-3 sentences max.",
    "Speak naturally as if talking, not texting. No markdown, no bullet points, no URLs, no code blocks.",
    "Use conversational language. Be warm and concise.",
]

CHAT_INSTRUCTIONS = [
    "You are a personal AI assistant responding via chat. Keep responses concise and conversational.",
]

MEMORY_INSTRUCTIONS = (
    "\nMEMORY MANAGEMENT:"
    "\nWhen the user shares something worth remembering, sets goals, or completes goals, "
    "include these tags in your response (they are processed automatically and hidden from the user):"
    "\n[REMEMBER: fact to store]"
    "\n[GOAL: goal text | DEADLINE: optional date]"
    "\n[DONE: search text for completed goal]"
)

_profile_cache: Optional[str] = None


def load_profile() -> str:
    """Read the optional user profile once. Missing file means no profile."""
    global _profile_cache
    if _profile_cache is None:
        _profile_cache = ""
        if settings.profile_path:
            path = Path(settings.profile_path)
            if path.exists():
                _profile_cache = path.read_text(encoding="utf-8").strip()
            else:
                logger.warning(f"[PROMPT] Profile file not found: {path}")
    return _profile_cache


def current_time_text() -> str:
    """Local time in the user's timezone, spelled out for the model."""
    try:
        tz = pytz.timezone(settings.user_timezone)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"[PROMPT] Unknown timezone '{settings.user_timezone}', using UTC")
        tz = pytz.utc
    return datetime.now(tz).strftime("%A, %B %d, %Y, %I:%M %p")


def build_prompt(
    user_message: str,
    channel: str = "phone",
    relevant_context: Optional[str] = None,
    memory_context: Optional[str] = None,
) -> str:
    """Generate the full prompt for one turn."""
    parts = list(PHONE_INSTRUCTIONS if channel == "phone" else CHAT_INSTRUCTIONS)

    if settings.user_name:
        parts.append(f"You are speaking with {settings.user_name}.")
    parts.append(f"Current time: {current_time_text()}")

    profile = load_profile()
    if profile:
        parts.append(f"\nProfile:\n{profile}")
    if memory_context:
        parts.append(f"\n{memory_context}")
    if relevant_context:
        parts.append(f"\n{relevant_context}")

    parts.append(MEMORY_INSTRUCTIONS)
    parts.append(f"\nUser: {user_message}")

    return "\n".join(parts)

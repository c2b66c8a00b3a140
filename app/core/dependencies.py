"""FastAPI dependencies."""
from functools import lru_cache

from app.core.config import settings
from app.db.database import AsyncSessionLocal
from app.services.assistant.agent import AssistantService
from app.services.assistant.memory import MemoryService
from app.services.call_session.store import CallStore, InMemoryCallStore
from app.services.persistence.messages import ConversationLog
from app.services.pipeline.runner import TurnPipeline
from app.services.speech.stt import SpeechToTextService
from app.services.telephony.twilio_service import TwilioService

# Process-wide: sessions must survive across webhook requests
_call_store = InMemoryCallStore(ttl_seconds=settings.session_ttl_seconds)


def get_call_store() -> CallStore:
    """Get the shared call store."""
    return _call_store


def get_conversation_log() -> ConversationLog:
    """Get conversation log instance."""
    return ConversationLog(AsyncSessionLocal)


@lru_cache
def get_twilio_service() -> TwilioService:
    """Get the Twilio service singleton."""
    return TwilioService()


@lru_cache
def get_turn_pipeline() -> TurnPipeline:
    """Get the turn pipeline singleton."""
    return TurnPipeline(
        call_store=get_call_store(),
        twilio_service=get_twilio_service(),
        stt_service=SpeechToTextService(),
        assistant_service=AssistantService(),
        memory_service=MemoryService(AsyncSessionLocal),
        conversation_log=get_conversation_log(),
        grace_seconds=settings.recording_grace_seconds,
    )

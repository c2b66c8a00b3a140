"""Conversation log persistence."""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import Message

logger = logging.getLogger(__name__)


class TurnRole(str, Enum):
    """Who produced a turn."""

    USER = "user"  # the caller
    SYSTEM = "system"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class ConversationLog:
    """Appends turn records to the durable conversation log.

    Each operation opens its own session, so the log can be written from
    background work that outlives the request which started it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save_message(
        self,
        role: TurnRole,
        content: str,
        channel: str = "phone",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Message]:
        """Append a turn. Failures are logged and swallowed; returns None on failure."""
        try:
            async with self.session_factory() as db:
                message = Message(
                    role=str(role),
                    content=content,
                    channel=channel,
                    extra=metadata or {},
                )
                db.add(message)
                await db.commit()
                await db.refresh(message)
                return message
        except Exception as e:
            logger.error(
                f"[CONVERSATION LOG] Save failed - Role: {role}, Channel: {channel}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return None

    async def recent_messages(
        self, channel: Optional[str] = None, limit: int = 100
    ) -> List[Message]:
        """Get the latest turns, newest first."""
        query = select(Message).order_by(desc(Message.created_at), desc(Message.id)).limit(limit)
        if channel:
            query = query.where(Message.channel == channel)

        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

"""Durable assistant memory: facts, goals and past-message lookup."""
import logging
import re
from datetime import datetime
from typing import List
from sqlalchemy import select, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import Memory, Message

logger = logging.getLogger(__name__)

REMEMBER_TAG = re.compile(r"\[REMEMBER:\s*(.+?)\]", re.IGNORECASE)
GOAL_TAG = re.compile(r"\[GOAL:\s*(.+?)(?:\s*\|\s*DEADLINE:\s*(.+?))?\]", re.IGNORECASE)
DONE_TAG = re.compile(r"\[DONE:\s*(.+?)\]", re.IGNORECASE)

# Too common to say anything about relevance
STOPWORDS = {
    "about", "again", "also", "been", "could", "does", "from", "have", "just",
    "like", "more", "please", "should", "some", "that", "that's", "their",
    "them", "then", "there", "they", "this", "today", "want", "what", "when",
    "where", "which", "will", "with", "would", "your",
}


class MemoryService:
    """Reads and writes the memory store behind the assistant prompt."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def process_memory_intents(self, response: str) -> str:
        """
        Store memory tags found in a model reply and strip them out.

        Recognised tags:
            [REMEMBER: fact]
            [GOAL: goal text | DEADLINE: optional date]
            [DONE: search text for a completed goal]

        Returns:
            The reply with all tags removed, ready to be spoken.
        """
        try:
            async with self.session_factory() as db:
                for match in REMEMBER_TAG.finditer(response):
                    db.add(Memory(type="fact", content=match.group(1).strip()))

                for match in GOAL_TAG.finditer(response):
                    deadline = match.group(2).strip() if match.group(2) else None
                    db.add(Memory(type="goal", content=match.group(1).strip(), deadline=deadline))

                for match in DONE_TAG.finditer(response):
                    await self._complete_goal(db, match.group(1).strip())

                await db.commit()
        except Exception as e:
            logger.error(
                f"[MEMORY] Failed to store memory intents - Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

        cleaned = DONE_TAG.sub("", GOAL_TAG.sub("", REMEMBER_TAG.sub("", response)))
        cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    async def _complete_goal(self, db: AsyncSession, search_text: str) -> None:
        result = await db.execute(
            select(Memory)
            .where(Memory.type == "goal", Memory.content.ilike(f"%{search_text}%"))
            .order_by(desc(Memory.created_at))
            .limit(1)
        )
        goal = result.scalar_one_or_none()
        if goal:
            goal.type = "completed_goal"
            goal.completed_at = datetime.utcnow()
            logger.info(f"[MEMORY] Goal completed: {goal.content}")
        else:
            logger.info(f"[MEMORY] No active goal matches '{search_text}'")

    async def get_memory_context(self) -> str:
        """Summarise stored facts and active goals for the prompt. Empty when there are none."""
        try:
            async with self.session_factory() as db:
                facts = (
                    await db.execute(
                        select(Memory)
                        .where(Memory.type == "fact")
                        .order_by(desc(Memory.created_at))
                        .limit(20)
                    )
                ).scalars().all()
                goals = (
                    await db.execute(
                        select(Memory)
                        .where(Memory.type == "goal")
                        .order_by(desc(Memory.created_at))
                        .limit(10)
                    )
                ).scalars().all()
        except Exception as e:
            logger.warning(f"[MEMORY] Memory context unavailable - {type(e).__name__}: {str(e)}")
            return ""

        parts = []
        if facts:
            parts.append("FACTS:\n" + "\n".join(f"- {fact.content}" for fact in facts))
        if goals:
            lines = []
            for goal in goals:
                deadline = f" (by {goal.deadline})" if goal.deadline else ""
                lines.append(f"- {goal.content}{deadline}")
            parts.append("GOALS:\n" + "\n".join(lines))
        return "\n\n".join(parts)

    async def get_relevant_context(self, query: str, limit: int = 5) -> str:
        """Find earlier messages that share keywords with `query`."""
        keywords = self._keywords(query)
        if not keywords:
            return ""

        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Message)
                    .where(or_(*[Message.content.ilike(f"%{word}%") for word in keywords]))
                    .order_by(desc(Message.created_at), desc(Message.id))
                    .limit(limit + 1)
                )
                messages = result.scalars().all()
        except Exception as e:
            logger.warning(f"[MEMORY] Relevant context unavailable - {type(e).__name__}: {str(e)}")
            return ""

        # The utterance itself is usually already logged
        messages = [m for m in messages if query.strip() not in m.content][:limit]
        if not messages:
            return ""
        lines = [f"[{m.role}]: {m.content}" for m in reversed(messages)]
        return "RELEVANT PAST MESSAGES:\n" + "\n".join(lines)

    @staticmethod
    def _keywords(text: str) -> List[str]:
        words = []
        for word in re.findall(r"[a-z][a-z']{3,}", text.lower()):
            if word not in STOPWORDS and word not in words:
                words.append(word)
        return words[:8]

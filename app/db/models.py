"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Message(Base):
    """Conversation turn record. Rows are append-only."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String, nullable=False)  # user, system, assistant
    content = Column(Text, nullable=False)
    channel = Column(String, default="phone", nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class Memory(Base):
    """Durable fact or goal extracted from assistant replies."""

    __tablename__ = "memories"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False, index=True)  # fact, goal, completed_goal
    content = Column(Text, nullable=False)
    deadline = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

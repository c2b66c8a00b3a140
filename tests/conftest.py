"""Shared test fixtures and configuration."""
import pytest
import os
from unittest.mock import Mock, AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["TWILIO_ACCOUNT_SID"] = "ACtest"
os.environ["TWILIO_AUTH_TOKEN"] = "test-token"
os.environ["TWILIO_PHONE_NUMBER"] = "+15550002222"
os.environ["USER_PHONE_NUMBER"] = "+15550001111"
os.environ["PHONE_WEBHOOK_URL"] = "https://relay.example.test"
os.environ["API_KEY"] = "test-api-key"
os.environ["RECORDING_GRACE_SECONDS"] = "0"
os.environ["TWILIO_VALIDATE_SIGNATURES"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from app.main import app
from app.db.models import Base
from app.core.dependencies import (
    get_call_store,
    get_conversation_log,
    get_turn_pipeline,
    get_twilio_service,
)
from app.services.call_session.store import InMemoryCallStore
from app.services.pipeline.runner import TurnPipeline


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

USER_NUMBER = "+15550001111"
BASE_URL = "https://relay.example.test"


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def call_store():
    """Fresh call store per test."""
    return InMemoryCallStore(ttl_seconds=30 * 60)


@pytest.fixture
def mock_twilio():
    """Mock Twilio service."""
    service = Mock()
    service.download_recording = AsyncMock(return_value=b"RIFF....WAVEfmt ")
    service.delete_recording = AsyncMock(return_value=None)
    service.create_outbound_call = AsyncMock(return_value="CAoutbound123")
    return service


@pytest.fixture
def mock_stt():
    """Mock speech-to-text service."""
    service = Mock()
    service.transcribe_audio = AsyncMock(return_value="What's on my calendar tomorrow?")
    return service


@pytest.fixture
def mock_assistant():
    """Mock LLM assistant."""
    service = Mock()
    service.invoke = AsyncMock(return_value="You have a dentist appointment at ten.")
    return service


@pytest.fixture
def mock_memory():
    """Mock memory service that passes replies through untouched."""
    service = Mock()
    service.get_relevant_context = AsyncMock(return_value="")
    service.get_memory_context = AsyncMock(return_value="")

    async def _passthrough(text):
        return text

    service.process_memory_intents = AsyncMock(side_effect=_passthrough)
    return service


@pytest.fixture
def mock_conversation_log():
    """Mock conversation log."""
    log = Mock()
    log.save_message = AsyncMock(return_value=None)
    log.recent_messages = AsyncMock(return_value=[])
    return log


@pytest.fixture
def pipeline(call_store, mock_twilio, mock_stt, mock_assistant, mock_memory, mock_conversation_log):
    """Turn pipeline wired to mocks, with no grace delay."""
    return TurnPipeline(
        call_store=call_store,
        twilio_service=mock_twilio,
        stt_service=mock_stt,
        assistant_service=mock_assistant,
        memory_service=mock_memory,
        conversation_log=mock_conversation_log,
        grace_seconds=0,
    )


@pytest.fixture
def test_client(call_store, pipeline, mock_conversation_log, mock_twilio):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_call_store] = lambda: call_store
    app.dependency_overrides[get_turn_pipeline] = lambda: pipeline
    app.dependency_overrides[get_conversation_log] = lambda: mock_conversation_log
    app.dependency_overrides[get_twilio_service] = lambda: mock_twilio

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def api_headers():
    """Headers for the management API."""
    return {"X-API-Key": "test-api-key"}

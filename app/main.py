"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.dependencies import get_call_store, get_turn_pipeline
from app.core.logging import setup_logging
from app.db.database import init_db
from app.api import health, calls
from app.api.webhooks import voice
from app.services.call_session.sweeper import SessionSweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    sweeper = SessionSweeper(get_call_store(), settings.session_sweep_interval_seconds)
    sweeper.start()
    yield
    # Shutdown
    await sweeper.stop()
    await get_turn_pipeline().wait_for_cleanup()


app = FastAPI(
    title="Phone Relay",
    description="Twilio phone front end for a personal AI assistant",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(calls.router, tags=["calls"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.phone_webhook_host, port=settings.phone_webhook_port)

"""Call session models."""
import time
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class CallSession(BaseModel):
    """Ephemeral per-call metadata, keyed by Twilio CallSid."""

    call_sid: str
    turns: int = 0
    # time.monotonic() reading of the last inbound event
    last_activity: float = Field(default_factory=time.monotonic)

    def touch(self) -> None:
        """Refresh the activity timestamp."""
        self.last_activity = time.monotonic()


class TurnResult(BaseModel):
    """Outcome of one conversational turn, ready to be spoken."""

    model_config = ConfigDict(frozen=True)

    text: str
    terminal: bool = False  # speak and hang up instead of recording again


class ResultState(str, Enum):
    """State of a call's pending-result slot."""

    ABSENT = "absent"  # no turn in flight
    IN_PROGRESS = "in_progress"
    READY = "ready"

    def __str__(self) -> str:
        return self.value

"""Call session manager."""
import logging
from typing import Optional
from fastapi import BackgroundTasks

from app.core.config import settings
from app.services.assistant.constants import (
    DEFAULT_OUTBOUND_MESSAGE,
    LOST_CALL_MESSAGE,
    NO_RECORDING_MESSAGE,
    REJECTED_CALLER_MESSAGE,
)
from app.services.call_session.models import ResultState
from app.services.call_session.store import CallStore
from app.services.persistence.messages import ConversationLog, TurnRole
from app.services.pipeline.runner import TurnPipeline
from app.services.speech.twiml import TwimlBuilder

logger = logging.getLogger(__name__)

TERMINAL_CALL_STATUSES = {"completed", "failed", "no-answer", "busy", "canceled"}


class CallSessionManager:
    """Maps Twilio webhook events to TwiML and owns session/result lifecycles.

    Every method returns immediately. Slow work is handed to the turn
    pipeline as a background task and its result is collected by Twilio
    polling the poll route.
    """

    def __init__(
        self,
        call_store: CallStore,
        pipeline: TurnPipeline,
        conversation_log: ConversationLog,
        twiml: TwimlBuilder,
        allowed_caller: Optional[str] = None,
    ):
        self.call_store = call_store
        self.pipeline = pipeline
        self.conversation_log = conversation_log
        self.twiml = twiml
        self.allowed_caller = allowed_caller if allowed_caller is not None else settings.user_phone_number

    def is_authorized(self, from_number: str) -> bool:
        """Only the configured caller may dial in. No allow-list means anyone."""
        return not self.allowed_caller or from_number == self.allowed_caller

    async def handle_inbound(self, call_sid: str, from_number: str) -> str:
        """Greet an authorized caller and start recording."""
        if not self.is_authorized(from_number):
            logger.warning(f"[INBOUND] Unauthorized caller: {from_number} - CallSid: {call_sid}")
            return self.twiml.say_and_hangup(REJECTED_CALLER_MESSAGE)

        await self.call_store.create_session(call_sid)
        await self.conversation_log.save_message(
            TurnRole.SYSTEM,
            f"Phone call started from {from_number}",
            "phone",
            metadata={"call_sid": call_sid, "from": from_number},
        )
        logger.info(f"[INBOUND] Session created - CallSid: {call_sid}, From: {from_number}")
        return self.twiml.greeting()

    async def handle_recording(
        self,
        call_sid: str,
        recording_url: Optional[str],
        recording_sid: Optional[str],
        background_tasks: BackgroundTasks,
    ) -> str:
        """Accept a finished recording and start the turn pipeline."""
        if not recording_url:
            logger.warning(f"[RECORDING] No RecordingUrl in webhook - CallSid: {call_sid}")
            return self.twiml.say_and_hangup(NO_RECORDING_MESSAGE)

        if await self.call_store.get_session(call_sid) is None:
            # Only calls that passed call-start (or were placed by us) have a session
            logger.warning(
                f"[RECORDING] No session for recording, hanging up - "
                f"CallSid: {call_sid}, RecordingSid: {recording_sid}"
            )
            return self.twiml.say_and_hangup(NO_RECORDING_MESSAGE)

        session = await self.call_store.begin_turn(call_sid)
        if session is None:
            # Half-duplex: the earlier turn keeps the slot; the caller keeps polling it
            logger.warning(
                f"[RECORDING] Turn already in progress, ignoring recording - "
                f"CallSid: {call_sid}, RecordingSid: {recording_sid}"
            )
            return self.twiml.thinking(call_sid)

        logger.info(f"[RECORDING] Turn {session.turns} accepted - CallSid: {call_sid}")
        background_tasks.add_task(self.pipeline.run, call_sid, recording_url, recording_sid or "")
        return self.twiml.thinking(call_sid)

    async def handle_poll(self, call_sid: str) -> str:
        """Deliver a ready turn result, or keep Twilio waiting."""
        session = await self.call_store.touch_session(call_sid)
        state, result = await self.call_store.take_result(call_sid)

        if state == ResultState.READY:
            logger.info(f"[POLL] Delivering result - CallSid: {call_sid}, terminal: {result.terminal}")
            if result.terminal:
                return self.twiml.say_and_hangup(result.text)
            return self.twiml.say_and_record(result.text)

        if state == ResultState.ABSENT and session is None:
            logger.warning(f"[POLL] No session or pending turn - CallSid: {call_sid}")
            return self.twiml.say_and_hangup(LOST_CALL_MESSAGE)

        logger.debug(f"[POLL] Not ready ({state}) - CallSid: {call_sid}")
        return self.twiml.pause_and_poll(call_sid)

    async def handle_outbound(self, call_sid: str, message: Optional[str]) -> str:
        """Speak the opening line of an outbound call, then listen."""
        message = message or DEFAULT_OUTBOUND_MESSAGE
        await self.call_store.create_session(call_sid)
        await self.conversation_log.save_message(
            TurnRole.ASSISTANT,
            f"[Outbound call]: {message}",
            "phone",
            metadata={"call_sid": call_sid},
        )
        logger.info(f"[OUTBOUND] Call answered - CallSid: {call_sid}")
        return self.twiml.say_and_record(message)

    async def handle_status(self, call_sid: str, call_status: str) -> bool:
        """Drop session state for calls that have ended. Returns True if the call was terminal."""
        if call_status not in TERMINAL_CALL_STATUSES:
            return False
        removed = await self.call_store.delete_session(call_sid)
        logger.info(
            f"[CALL STATUS] Call ended - CallSid: {call_sid}, Status: {call_status}, "
            f"state removed: {removed}"
        )
        return True

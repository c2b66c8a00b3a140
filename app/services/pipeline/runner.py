"""Background turn pipeline: recording -> transcript -> reply -> pending result."""
import asyncio
import logging
from typing import Set

from app.services.assistant.agent import AssistantService
from app.services.assistant.constants import (
    COULD_NOT_HEAR_MESSAGE,
    COULD_NOT_UNDERSTAND_MESSAGE,
    FAREWELL_MESSAGE,
    HICCUP_MESSAGE,
    is_end_of_call,
)
from app.services.assistant.memory import MemoryService
from app.services.assistant.prompt import build_prompt
from app.services.call_session.models import TurnResult
from app.services.call_session.store import CallStore
from app.services.persistence.messages import ConversationLog, TurnRole
from app.services.speech.stt import SpeechToTextService
from app.services.telephony.twilio_service import TwilioService

logger = logging.getLogger(__name__)

CHANNEL = "phone"


class TurnPipeline:
    """Processes one caller recording and publishes the reply for polling.

    `run` is meant to be scheduled without being awaited by the webhook that
    accepted the recording. It never raises and always leaves the call's
    pending-result slot resolved.
    """

    def __init__(
        self,
        call_store: CallStore,
        twilio_service: TwilioService,
        stt_service: SpeechToTextService,
        assistant_service: AssistantService,
        memory_service: MemoryService,
        conversation_log: ConversationLog,
        grace_seconds: float = 1.0,
    ):
        self.call_store = call_store
        self.twilio_service = twilio_service
        self.stt_service = stt_service
        self.assistant_service = assistant_service
        self.memory_service = memory_service
        self.conversation_log = conversation_log
        self.grace_seconds = grace_seconds
        self._cleanup_tasks: Set[asyncio.Task] = set()

    async def run(self, call_sid: str, recording_url: str, recording_sid: str) -> None:
        """Process a recording and publish the outcome into the call store."""
        result = TurnResult(text=HICCUP_MESSAGE)
        try:
            result = await self._process(call_sid, recording_url, recording_sid)
        except Exception as e:
            logger.error(
                f"[PIPELINE] Turn failed - CallSid: {call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            # Recording is deleted on every exit path, including failures
            self.schedule_recording_cleanup(recording_sid)
            published = await self.call_store.publish_result(call_sid, result)
            if published:
                logger.info(
                    f"[PIPELINE] Result ready - CallSid: {call_sid}, terminal: {result.terminal}"
                )
            else:
                logger.info(f"[PIPELINE] Call gone before result was ready - CallSid: {call_sid}")

    async def _process(
        self, call_sid: str, recording_url: str, recording_sid: str
    ) -> TurnResult:
        # Twilio may not have the recording available the instant it posts
        if self.grace_seconds > 0:
            await asyncio.sleep(self.grace_seconds)

        audio = await self.twilio_service.download_recording(recording_url)
        if audio is None:
            return TurnResult(text=COULD_NOT_HEAR_MESSAGE)

        try:
            transcription = await self.stt_service.transcribe_audio(audio, "voice.wav")
        except Exception as e:
            logger.error(f"[PIPELINE] {str(e)} - CallSid: {call_sid}")
            transcription = ""

        if not transcription or not transcription.strip():
            logger.warning(f"[PIPELINE] Empty transcription - CallSid: {call_sid}")
            return TurnResult(text=COULD_NOT_UNDERSTAND_MESSAGE)

        transcription = transcription.strip()
        logger.info(f"[PIPELINE] Transcribed - CallSid: {call_sid}, Text: '{transcription[:200]}'")
        metadata = {"call_sid": call_sid, "recording_sid": recording_sid}
        await self.conversation_log.save_message(
            TurnRole.USER, f"[Phone]: {transcription}", CHANNEL, metadata=metadata
        )

        if is_end_of_call(transcription):
            logger.info(f"[PIPELINE] End-of-call intent detected - CallSid: {call_sid}")
            await self.conversation_log.save_message(
                TurnRole.ASSISTANT, FAREWELL_MESSAGE, CHANNEL, metadata=metadata
            )
            return TurnResult(text=FAREWELL_MESSAGE, terminal=True)

        relevant_context, memory_context = await asyncio.gather(
            self.memory_service.get_relevant_context(transcription),
            self.memory_service.get_memory_context(),
        )
        prompt = build_prompt(
            f"[Phone call]: {transcription}",
            CHANNEL,
            relevant_context,
            memory_context,
        )

        raw_reply = await self.assistant_service.invoke(prompt)
        reply = await self.memory_service.process_memory_intents(raw_reply)
        if not reply:
            raise ValueError("Assistant returned an empty reply")

        await self.conversation_log.save_message(
            TurnRole.ASSISTANT, reply, CHANNEL, metadata=metadata
        )
        return TurnResult(text=reply)

    def schedule_recording_cleanup(self, recording_sid: str) -> None:
        """Delete the provider-held recording without waiting for it."""
        if not recording_sid:
            return
        task = asyncio.create_task(self.twilio_service.delete_recording(recording_sid))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def wait_for_cleanup(self) -> None:
        """Wait for scheduled recording deletions. Used at shutdown."""
        if self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)

"""Twilio voice webhook endpoints."""
import logging
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Request, Form, Depends, Query
from fastapi.responses import Response

from app.api.auth import validate_twilio_signature
from app.core.config import settings
from app.core.dependencies import get_call_store, get_conversation_log, get_turn_pipeline
from app.services.assistant.constants import HICCUP_MESSAGE
from app.services.call_session.manager import CallSessionManager
from app.services.call_session.store import CallStore
from app.services.persistence.messages import ConversationLog
from app.services.pipeline.runner import TurnPipeline
from app.services.speech.twiml import TwimlBuilder

router = APIRouter(dependencies=[Depends(validate_twilio_signature)])
logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Sorry, something went wrong on my end. Please try again later."


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute URLs.

    Uses PHONE_WEBHOOK_URL if set (e.g. a tunnel or load balancer address),
    otherwise constructs from request.
    """
    if settings.phone_webhook_url:
        return settings.phone_webhook_url.rstrip('/')
    return str(request.base_url).rstrip('/')


def get_twiml_builder(request: Request) -> TwimlBuilder:
    """Get a TwiML builder bound to this service's public URL."""
    return TwimlBuilder(get_base_url(request))


def get_session_manager(
    twiml: TwimlBuilder = Depends(get_twiml_builder),
    call_store: CallStore = Depends(get_call_store),
    pipeline: TurnPipeline = Depends(get_turn_pipeline),
    conversation_log: ConversationLog = Depends(get_conversation_log),
) -> CallSessionManager:
    """Get call session manager."""
    return CallSessionManager(call_store, pipeline, conversation_log, twiml)


def twiml_response(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


@router.post("/voice/inbound")
async def handle_inbound_call(
    CallSid: str = Form(...),
    From: str = Form(""),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle an incoming call from Twilio.

    Rejects callers other than the configured user, otherwise greets them
    and starts recording.
    """
    logger.info(f"[INBOUND] Incoming call - CallSid: {CallSid}, From: {From}")
    try:
        return twiml_response(await session_manager.handle_inbound(CallSid, From))
    except Exception as e:
        logger.error(
            f"[INBOUND] Error processing incoming call - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        return twiml_response(session_manager.twiml.say_and_hangup(ERROR_MESSAGE))


@router.post("/voice/respond")
async def handle_recording(
    background_tasks: BackgroundTasks,
    CallSid: str = Form(...),
    RecordingUrl: Optional[str] = Form(None),
    RecordingSid: Optional[str] = Form(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle a finished recording from Twilio.

    The turn pipeline runs after this response is sent; Twilio is told to
    pause and poll for the result.
    """
    logger.info(
        f"[RECORDING] Recording received - CallSid: {CallSid}, RecordingSid: {RecordingSid}"
    )
    try:
        twiml = await session_manager.handle_recording(
            CallSid, RecordingUrl, RecordingSid, background_tasks
        )
        return twiml_response(twiml)
    except Exception as e:
        logger.error(
            f"[RECORDING] Error accepting recording - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        return twiml_response(session_manager.twiml.say_and_record(HICCUP_MESSAGE))


@router.api_route("/voice/poll", methods=["GET", "POST"])
async def handle_poll(
    callSid: str = Query(""),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """Check whether the reply for the current turn is ready."""
    try:
        return twiml_response(await session_manager.handle_poll(callSid))
    except Exception as e:
        logger.error(
            f"[POLL] Error polling for result - CallSid: {callSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        return twiml_response(session_manager.twiml.say_and_record(HICCUP_MESSAGE))


@router.post("/voice/outbound")
async def handle_outbound_call(
    CallSid: str = Form(...),
    message: Optional[str] = Query(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """Handle the answer of a call this service placed."""
    logger.info(f"[OUTBOUND] Outbound call answered - CallSid: {CallSid}")
    try:
        return twiml_response(await session_manager.handle_outbound(CallSid, message))
    except Exception as e:
        logger.error(
            f"[OUTBOUND] Error starting outbound conversation - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        return twiml_response(session_manager.twiml.say_and_hangup(ERROR_MESSAGE))


@router.post("/voice/status")
async def handle_call_status(
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle call status updates from Twilio.

    Terminal statuses (completed, failed, no-answer, ...) drop the call's state.
    """
    logger.info(f"[CALL STATUS] Status update - CallSid: {CallSid}, CallStatus: {CallStatus}")
    try:
        await session_manager.handle_status(CallSid, CallStatus)
    except Exception as e:
        logger.error(
            f"[CALL STATUS] Error handling call status update - CallSid: {CallSid}, "
            f"CallStatus: {CallStatus}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    # Always OK so Twilio does not retry
    return Response(content="OK", media_type="text/plain")

"""Outbound call and conversation history API endpoints."""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, HTTPException
from pydantic import BaseModel

from app.api.auth import require_api_key
from app.api.webhooks.voice import get_base_url
from app.core.dependencies import get_conversation_log, get_twilio_service
from app.services.persistence.messages import ConversationLog
from app.services.telephony.twilio_service import TelephonyConfigError, TwilioService

router = APIRouter(dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)

DEFAULT_CALL_REASON = "Hey, you asked me to call you!"


class OutboundCallRequest(BaseModel):
    """Outbound call request model."""
    message: str = ""
    to: Optional[str] = None


class OutboundCallResponse(BaseModel):
    """Outbound call response model."""
    call_sid: str


class MessageResponse(BaseModel):
    """Conversation turn response model."""
    id: int
    role: str
    content: str
    channel: str
    created_at: datetime

    class Config:
        from_attributes = True


@router.post("/api/calls/outbound", response_model=OutboundCallResponse)
async def start_outbound_call(
    call_request: OutboundCallRequest,
    request: Request,
    twilio_service: TwilioService = Depends(get_twilio_service),
):
    """Place a call to the user (or `to`) that opens with `message`."""
    message = call_request.message.strip() or DEFAULT_CALL_REASON
    try:
        call_sid = await twilio_service.create_outbound_call(
            message, get_base_url(request), to=call_request.to
        )
    except TelephonyConfigError as e:
        logger.warning(f"[OUTBOUND API] Cannot place call - {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            f"[OUTBOUND API] Twilio call creation failed - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=502, detail="Could not initiate call")

    return OutboundCallResponse(call_sid=call_sid)


@router.get("/api/messages/history", response_model=List[MessageResponse])
async def get_message_history(
    channel: Optional[str] = "phone",
    limit: int = 100,
    conversation_log: ConversationLog = Depends(get_conversation_log),
):
    """Get stored conversation turns, newest first."""
    logger.info(f"[HISTORY] Request received - channel: {channel}, limit: {limit}")
    try:
        messages = await conversation_log.recent_messages(channel=channel, limit=limit)
    except Exception as e:
        logger.error(
            f"[HISTORY] Error fetching history - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail="Error fetching message history")
    return [MessageResponse.model_validate(message) for message in messages]

"""
Twilio service - outbound calls and recording housekeeping.

This service:
1. Places outbound calls that open with a supplied message
2. Downloads caller recordings for transcription
3. Deletes recordings from Twilio once they have been transcribed
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import quote, urlsplit

import httpx
from twilio.rest import Client as TwilioClient

from app.core.config import settings

logger = logging.getLogger(__name__)


def is_twilio_url(url: str) -> bool:
    """True for https URLs served by Twilio (api.twilio.com and regional edges)."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    return parts.scheme == "https" and (host == "twilio.com" or host.endswith(".twilio.com"))


class TelephonyConfigError(RuntimeError):
    """Raised when a call cannot be placed because numbers are not configured."""


class TwilioService:
    """Thin wrapper around the Twilio REST API."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        phone_number: Optional[str] = None,
        default_destination: Optional[str] = None,
        client: Optional[TwilioClient] = None,
    ):
        self.account_sid = account_sid or settings.twilio_account_sid
        self.auth_token = auth_token or settings.twilio_auth_token
        self.phone_number = phone_number if phone_number is not None else settings.twilio_phone_number
        self.default_destination = (
            default_destination if default_destination is not None else settings.user_phone_number
        )
        self.client = client or TwilioClient(self.account_sid, self.auth_token)

    async def create_outbound_call(
        self, message: str, base_url: str, to: Optional[str] = None
    ) -> str:
        """Start an outbound call that speaks `message` when answered.

        Args:
            message: Opening line, carried to the outbound webhook in the URL
            base_url: Externally reachable base URL of this service
            to: Destination number; defaults to the configured user number

        Returns:
            Twilio Call SID. Does not wait for the call to finish.

        Raises:
            TelephonyConfigError: If no destination or originating number is configured
        """
        target_number = to or self.default_destination
        if not target_number:
            raise TelephonyConfigError("No target phone number specified")
        if not self.phone_number:
            raise TelephonyConfigError("TWILIO_PHONE_NUMBER not configured")

        base_url = base_url.rstrip("/")
        voice_url = f"{base_url}/webhooks/voice/outbound?message={quote(message, safe='')}"
        status_callback = f"{base_url}/webhooks/voice/status"

        logger.info(f"[OUTBOUND] Starting call to {target_number}")
        call = await asyncio.to_thread(
            self.client.calls.create,
            to=target_number,
            from_=self.phone_number,
            url=voice_url,
            status_callback=status_callback,
            status_callback_event=["completed"],
        )
        logger.info(f"[OUTBOUND] Call initiated - CallSid: {call.sid}")
        return call.sid

    async def download_recording(self, recording_url: str) -> Optional[bytes]:
        """
        Fetch a recording as WAV.

        Returns None on a non-success status, and for URLs outside Twilio,
        which are never sent the account credentials.
        """
        if not is_twilio_url(recording_url):
            logger.warning(f"[RECORDING] Refusing non-Twilio recording URL: {recording_url}")
            return None

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{recording_url}.wav",
                auth=(self.account_sid, self.auth_token),
                follow_redirects=True,
            )

        if not response.is_success:
            logger.error(
                f"[RECORDING] Download failed - Status: {response.status_code}, URL: {recording_url}"
            )
            return None
        return response.content

    async def delete_recording(self, recording_sid: str) -> None:
        """Delete a recording from Twilio. Failures are logged, never raised."""
        if not recording_sid:
            return
        try:
            await asyncio.to_thread(self.client.recordings(recording_sid).delete)
            logger.debug(f"[RECORDING] Deleted {recording_sid}")
        except Exception as e:
            logger.error(
                f"[RECORDING] Cleanup failed - RecordingSid: {recording_sid}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )

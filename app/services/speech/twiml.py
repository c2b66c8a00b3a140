"""TwiML response builders."""
from typing import Optional
from urllib.parse import quote

from app.core.config import settings

GREETING_MESSAGE = "Hey! What can I help with?"
NO_INPUT_MESSAGE = "I didn't hear anything. Talk to you later!"


def escape_xml(text: str) -> str:
    """Escape XML special characters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


class TwimlBuilder:
    """Builds the TwiML documents returned to Twilio webhooks."""

    def __init__(self, base_url: str, voice: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.voice = voice or settings.twiml_voice

    @property
    def respond_url(self) -> str:
        """Where Twilio posts finished recordings."""
        return f"{self.base_url}/webhooks/voice/respond"

    def poll_url(self, call_sid: str) -> str:
        return f"{self.base_url}/webhooks/voice/poll?callSid={quote(call_sid, safe='')}"

    def _say(self, text: str) -> str:
        return f'<Say voice="{escape_xml(self.voice)}">{escape_xml(text)}</Say>'

    def greeting(self) -> str:
        """Speak the opening prompt and start recording."""
        return self.say_and_record(GREETING_MESSAGE)

    def say_and_record(self, text: str) -> str:
        """
        Speak text, then record the caller's next response.

        Recording stops after 3 seconds of silence, capped at 120 seconds.
        The trailing Say only plays when nothing was recorded.
        """
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    {self._say(text)}
    <Record action="{escape_xml(self.respond_url)}" method="POST" maxLength="120" trim="trim-silence" timeout="3" playBeep="false"/>
    {self._say(NO_INPUT_MESSAGE)}
</Response>"""

    def say_and_hangup(self, text: str) -> str:
        """Speak text and end the call."""
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    {self._say(text)}
</Response>"""

    def pause_and_poll(self, call_sid: str, pause_seconds: int = 2) -> str:
        """Wait briefly, then ask Twilio to poll for the turn result."""
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Pause length="{pause_seconds}"/>
    <Redirect method="POST">{escape_xml(self.poll_url(call_sid))}</Redirect>
</Response>"""

    def thinking(self, call_sid: str) -> str:
        """Markup returned right after a recording is accepted."""
        return self.pause_and_poll(call_sid, pause_seconds=1)

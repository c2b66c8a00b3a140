"""Phrases and patterns for the phone turn flow."""
import re

# Caller wants to end the call; whole words only
END_OF_CALL_PATTERN = re.compile(
    r"\b(goodbye|bye|hang up|end call|that's all)\b", re.IGNORECASE
)

FAREWELL_MESSAGE = "Alright, talk to you later! Bye!"
REJECTED_CALLER_MESSAGE = "Sorry, this number is private."
NO_RECORDING_MESSAGE = "I didn't catch that. Talk to you later!"
LOST_CALL_MESSAGE = "Sorry, I lost track of our call. Talk to you later!"
DEFAULT_OUTBOUND_MESSAGE = "Hey, just checking in!"

# Pipeline fallbacks
COULD_NOT_HEAR_MESSAGE = "Sorry, I couldn't hear that properly. Could you say that again?"
COULD_NOT_UNDERSTAND_MESSAGE = "Sorry, I couldn't understand that. Could you repeat?"
HICCUP_MESSAGE = "Sorry, I had a hiccup. What were you saying?"


def is_end_of_call(utterance: str) -> bool:
    """Check whether the caller asked to end the call."""
    return bool(END_OF_CALL_PATTERN.search(utterance))

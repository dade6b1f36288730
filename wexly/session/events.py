"""
Conversation lifecycle events.
"""

from dataclasses import dataclass
from enum import Enum


class LifecycleEventType(str, Enum):
    USER_INPUT_STARTED = "user-input-started"
    AI_THINKING = "ai-thinking"
    AI_SPEAKING_STARTED = "ai-speaking-started"
    AI_RESPONSE_TEXT_CHUNK = "ai-response-text-chunk"
    AI_RESPONSE_FINISHED = "ai-response-finished"
    ERROR = "error"


@dataclass(frozen=True)
class LifecycleEvent:
    """One event of the conversation lifecycle.

    `text` carries the delta for text chunks and the message for errors.
    """

    type: LifecycleEventType
    text: str = ""

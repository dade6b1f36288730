"""
Conversation session, lifecycle events and the presented emotion.
"""

from wexly.session.emotion import EmotionStateMachine
from wexly.session.events import LifecycleEvent, LifecycleEventType
from wexly.session.scheduler import Scheduler, ThreadingScheduler
from wexly.session.conversation import ConversationSession, create_session

__all__ = [
    "EmotionStateMachine",
    "LifecycleEvent",
    "LifecycleEventType",
    "Scheduler",
    "ThreadingScheduler",
    "ConversationSession",
    "create_session",
]

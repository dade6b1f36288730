"""
Conversation session.

Connects the analysis engine to the chat collaborator: finished
utterances are transcribed, turned into prompts from the latest analysis
snapshots and streamed back through lifecycle events, which drive the
chat log and the presented emotion.
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from wexly.analyzers.activity import ActivityClassifier, ActivityState
from wexly.analyzers.speech import Transcriber, create_whisper_transcriber
from wexly.core.models import ChatMessage, CompanionAnalysis, ContentClassification, UtteranceBoundary
from wexly.llm.client import LLMClient, create_llm_client
from wexly.llm.prompts import (
    SYSTEM_PROMPT,
    build_creative_prompt,
    build_simple_prompt,
    build_utterance_prompt,
    context_from_classification,
    format_creative_response,
)
from wexly.session.directives import parse_directive
from wexly.session.emotion import DEFAULT_DWELL_SECONDS, EmotionStateMachine
from wexly.session.events import LifecycleEvent, LifecycleEventType
from wexly.session.keywords import keyword_emotion
from wexly.session.scheduler import Scheduler
from wexly.utils.errors import ChatCompletionError, SessionClosedError, TranscriptionError
from wexly.utils.logging import create_logger_with_context


DEFAULT_HISTORY_TURNS: int = 10
DEFAULT_MAX_WORKERS: int = 2
DEFAULT_REPLY_EMOTION: str = "helpful"

NO_AUDIO_NOTICE = "No audio recorded"
NO_CONTENT_NOTICE = "No clear audio detected"
TRANSCRIPTION_ERROR_TEXT = "Sorry, I couldn't make out what you said. Please try again."
CHAT_ERROR_TEXT = "Sorry, I couldn't get a response right now. Please try again."

AnalysisProvider = Callable[[], Tuple[Optional[CompanionAnalysis], Optional[ContentClassification]]]


def _no_analysis() -> Tuple[Optional[CompanionAnalysis], Optional[ContentClassification]]:
    return None, None


class ConversationSession:
    """
    One user's conversation with the companion.

    Network-bound work (transcription, chat) runs on a small thread pool
    so the analysis loop never blocks. The session owns the chat log and
    the EmotionStateMachine.

    Usage:
        session = create_session(config)
        session.attach(engine)
        session.start()
    """

    def __init__(
        self,
        llm_client: LLMClient,
        transcriber: Optional[Transcriber] = None,
        activity: Optional[ActivityClassifier] = None,
        analysis_provider: Optional[AnalysisProvider] = None,
        emotion: Optional[EmotionStateMachine] = None,
        dwell_seconds: float = DEFAULT_DWELL_SECONDS,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
        history_turns: int = DEFAULT_HISTORY_TURNS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.llm_client = llm_client
        self.transcriber = transcriber
        self.activity = activity
        self.analysis_provider = analysis_provider or _no_analysis
        self.history_turns = history_turns

        self._active = False
        self._closed = False
        self._lock = threading.RLock()
        self._messages: List[ChatMessage] = []
        self._streaming_id: Optional[str] = None

        self.emotion = emotion or EmotionStateMachine(
            is_session_active=lambda: self._active,
            dwell_seconds=dwell_seconds,
            scheduler=scheduler,
            clock=clock,
        )

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"wexly-{self.session_id}"
        )
        self._message_listeners: List[Callable[[ChatMessage], None]] = []
        self._notice_listeners: List[Callable[[str], None]] = []
        self._error_listeners: List[Callable[[str], None]] = []
        self.logger = create_logger_with_context("session", {"session_id": self.session_id})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._check_open()
        self._active = True
        self.logger.info("Session started")

    def stop(self) -> None:
        self._active = False
        self.logger.info("Session stopped")

    def shutdown(self) -> None:
        """Stop the session, cancel emotion timers and wait for workers."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._active = False
        self.emotion.shutdown()
        self._executor.shutdown(wait=True)
        self.logger.info("Session shut down")

    def attach(self, engine) -> None:
        """
        Wire this session to a RealtimeAnalysisEngine.

        Utterance boundaries are submitted for processing, Idle -> Active
        transitions start a user turn, and the engine's latest snapshots
        become the prompt context.
        """
        self.activity = engine.activity_classifier
        self.analysis_provider = lambda: (engine.latest_companion, engine.latest_classification)
        engine.on_utterance(self.submit_utterance)
        engine.on_activity(self._on_activity)

    def _on_activity(self, previous: ActivityState, current: ActivityState) -> None:
        if previous is ActivityState.IDLE and current is ActivityState.ACTIVE:
            self.handle_event(LifecycleEvent(LifecycleEventType.USER_INPUT_STARTED))

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError(self.session_id)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_message(self, listener: Callable[[ChatMessage], None]) -> None:
        """Called with every added or updated chat message."""
        self._message_listeners.append(listener)

    def on_notice(self, listener: Callable[[str], None]) -> None:
        self._notice_listeners.append(listener)

    def on_error(self, listener: Callable[[str], None]) -> None:
        self._error_listeners.append(listener)

    def _emit(self, listeners: List[Callable[[Any], None]], payload: Any) -> None:
        for listener in list(listeners):
            try:
                listener(payload)
            except Exception:
                self.logger.exception("Session listener failed")

    # ------------------------------------------------------------------
    # Chat log
    # ------------------------------------------------------------------

    @property
    def conversation(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def window(self) -> List[ChatMessage]:
        """Last `history_turns` finished messages, oldest first."""
        with self._lock:
            finished = [m for m in self._messages if not m.is_streaming]
        return finished[-self.history_turns:] if self.history_turns > 0 else []

    def _add_message(self, role: str, content: str, is_streaming: bool = False) -> ChatMessage:
        message = ChatMessage(
            role=role,
            content=content,
            is_streaming=is_streaming,
            message_id=uuid.uuid4().hex,
        )
        with self._lock:
            self._messages.append(message)
        self._emit(self._message_listeners, message)
        return message

    def _replace_message(self, message_id: str, **changes) -> Optional[ChatMessage]:
        with self._lock:
            for index, message in enumerate(self._messages):
                if message.message_id == message_id:
                    updated = replace(message, **changes)
                    self._messages[index] = updated
                    break
            else:
                return None
        self._emit(self._message_listeners, updated)
        return updated

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def handle_event(self, event: LifecycleEvent) -> None:
        """Apply one lifecycle event to the chat log and the emotion."""
        kind = event.type

        if kind is LifecycleEventType.USER_INPUT_STARTED:
            self.emotion.request_emotion("listening")

        elif kind is LifecycleEventType.AI_THINKING:
            self.emotion.request_emotion("thinking")

        elif kind is LifecycleEventType.AI_SPEAKING_STARTED:
            self.emotion.request_emotion("speaking")

        elif kind is LifecycleEventType.AI_RESPONSE_TEXT_CHUNK:
            self._append_chunk(event.text)

        elif kind is LifecycleEventType.AI_RESPONSE_FINISHED:
            self._finish_response()

        elif kind is LifecycleEventType.ERROR:
            self._finalize_streaming()
            self.logger.warning(f"Session error: {event.text}")
            self._emit(self._error_listeners, event.text)
            self.emotion.request_emotion("concerned", force=True)

    def _append_chunk(self, delta: str) -> None:
        with self._lock:
            streaming_id = self._streaming_id
            if streaming_id is None:
                message = ChatMessage(
                    role="assistant",
                    content=delta,
                    is_streaming=True,
                    message_id=uuid.uuid4().hex,
                )
                self._messages.append(message)
                self._streaming_id = message.message_id
            else:
                current = self._find_message(streaming_id)
                content = (current.content if current else "") + delta
        if streaming_id is None:
            self._emit(self._message_listeners, message)
        else:
            self._replace_message(streaming_id, content=content)

    def _finish_response(self) -> None:
        with self._lock:
            streaming_id = self._streaming_id
            self._streaming_id = None
            current = self._find_message(streaming_id)

        emotion = None
        if current is not None:
            clean_text, emotion = parse_directive(current.content)
            self._replace_message(streaming_id, content=clean_text, is_streaming=False)
            emotion = emotion or keyword_emotion(clean_text)

        self.emotion.request_emotion(emotion or DEFAULT_REPLY_EMOTION)

    def _finalize_streaming(self) -> None:
        with self._lock:
            streaming_id = self._streaming_id
            self._streaming_id = None
            current = self._find_message(streaming_id)
        if current is not None:
            clean_text, _ = parse_directive(current.content)
            self._replace_message(streaming_id, content=clean_text, is_streaming=False)

    # ------------------------------------------------------------------
    # Utterances
    # ------------------------------------------------------------------

    def submit_utterance(self, boundary: UtteranceBoundary) -> "Future[Optional[ChatMessage]]":
        """
        Queue a finished utterance for processing on the worker pool.

        Raises:
            SessionClosedError: If the session has been shut down
        """
        self._check_open()
        if self.activity is not None:
            self.activity.in_flight = True
        return self._executor.submit(self.process_utterance, boundary)

    def process_utterance(self, boundary: UtteranceBoundary) -> Optional[ChatMessage]:
        """
        Transcribe a segment, prompt the chat collaborator and stream the
        reply back as lifecycle events.

        Returns:
            The finished assistant message, or None when nothing was sent
            or the turn failed.
        """
        if self.activity is not None:
            self.activity.in_flight = True
        try:
            return self._process_utterance(boundary)
        finally:
            if self.activity is not None:
                self.activity.in_flight = False

    def _process_utterance(self, boundary: UtteranceBoundary) -> Optional[ChatMessage]:
        if boundary.is_empty:
            self.logger.info("Empty utterance segment")
            self._emit(self._notice_listeners, NO_AUDIO_NOTICE)
            return None

        transcript = ""
        if self.transcriber is not None:
            try:
                result = self.transcriber.transcribe(boundary.segment, boundary.sample_rate)
            except TranscriptionError as e:
                self.logger.error(f"Transcription failed: {e}")
                self.handle_event(LifecycleEvent(LifecycleEventType.ERROR, TRANSCRIPTION_ERROR_TEXT))
                return None
            transcript = result.transcript

        companion, classification = self.analysis_provider()
        prompt = build_utterance_prompt(transcript, companion, classification)
        if prompt is None:
            self.logger.info("No transcript and no music in utterance")
            self._emit(self._notice_listeners, NO_CONTENT_NOTICE)
            return None

        history = [{"role": m.role, "content": m.content} for m in self.window()]
        history.append({"role": "user", "content": prompt.prompt})
        self._add_message("user", prompt.display_text)

        self.logger.info(
            f"Utterance {boundary.duration:.2f}s -> prompt ({len(history)} messages)"
        )
        return self._stream_reply(history)

    def _stream_reply(self, history: List[Dict[str, str]]) -> Optional[ChatMessage]:
        self.handle_event(LifecycleEvent(LifecycleEventType.AI_THINKING))

        streaming_id = None
        try:
            for delta in self.llm_client.chat_stream(SYSTEM_PROMPT, history):
                if streaming_id is None:
                    self.handle_event(LifecycleEvent(LifecycleEventType.AI_SPEAKING_STARTED))
                self.handle_event(LifecycleEvent(LifecycleEventType.AI_RESPONSE_TEXT_CHUNK, delta))
                streaming_id = streaming_id or self._streaming_id
        except ChatCompletionError as e:
            self.logger.error(f"Chat failed: {e}")
            self.handle_event(LifecycleEvent(LifecycleEventType.ERROR, CHAT_ERROR_TEXT))
            return None

        self.handle_event(LifecycleEvent(LifecycleEventType.AI_RESPONSE_FINISHED))
        return self._find_message(streaming_id)

    def _find_message(self, message_id: Optional[str]) -> Optional[ChatMessage]:
        if message_id is None:
            return None
        with self._lock:
            return next((m for m in self._messages if m.message_id == message_id), None)

    # ------------------------------------------------------------------
    # Creative suggestions
    # ------------------------------------------------------------------

    def request_suggestion(self, mode: Optional[str] = None) -> Optional[ChatMessage]:
        """
        Ask for one creative suggestion about the music being played.

        Args:
            mode: enhance, create or experiment; chosen from the latest
                classification when None

        Returns:
            The assistant message with the formatted suggestion, or None
            if the chat collaborator failed.
        """
        self._check_open()
        _, classification = self.analysis_provider()
        if classification is not None and classification.is_music_detected:
            prompt = build_creative_prompt(context_from_classification(classification), mode)
        else:
            prompt = build_simple_prompt(is_live=self._active)

        self.handle_event(LifecycleEvent(LifecycleEventType.AI_THINKING))
        try:
            raw = self.llm_client.chat(SYSTEM_PROMPT, prompt)
        except ChatCompletionError as e:
            self.logger.error(f"Suggestion failed: {e}")
            self.handle_event(LifecycleEvent(LifecycleEventType.ERROR, CHAT_ERROR_TEXT))
            return None

        clean_text, _ = parse_directive(format_creative_response(raw))
        message = self._add_message("assistant", clean_text)
        self.emotion.request_emotion("suggesting")
        return message

    def submit_suggestion(self, mode: Optional[str] = None) -> "Future[Optional[ChatMessage]]":
        """Run request_suggestion on the worker pool."""
        self._check_open()
        return self._executor.submit(self.request_suggestion, mode)


def create_session(
    config: Dict[str, Any],
    llm_client: Optional[LLMClient] = None,
    transcriber: Optional[Transcriber] = None,
    scheduler: Optional[Scheduler] = None,
    clock: Callable[[], float] = time.monotonic,
) -> ConversationSession:
    """
    Factory function to create a ConversationSession from config.

    Args:
        config: Full application configuration dict
        llm_client: Chat client override (built from 'llm' when None)
        transcriber: Transcriber override (built from 'speech' when None)
    """
    llm_config = config.get('llm', {})
    if llm_client is None:
        llm_client = create_llm_client(llm_config)
    if transcriber is None:
        transcriber = create_whisper_transcriber(config.get('speech', {}))

    return ConversationSession(
        llm_client=llm_client,
        transcriber=transcriber,
        dwell_seconds=config.get('emotion', {}).get('dwell_seconds', DEFAULT_DWELL_SECONDS),
        scheduler=scheduler,
        clock=clock,
        history_turns=llm_config.get('history_turns', DEFAULT_HISTORY_TURNS),
        max_workers=config.get('session', {}).get('max_workers', DEFAULT_MAX_WORKERS),
    )

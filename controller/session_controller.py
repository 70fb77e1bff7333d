"""Session controller that serialises listening, tutor calls, and spoken replies."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from llm import TIMEOUT_SENTINEL, ConversationAgent, LearningMode

from .inactivity_timer import DEFAULT_INACTIVITY_SECONDS, InactivityTimer
from .speech import CaptureUnsupportedError, SpeechCapability
from .transcript import Message, MessageLog, Screen, Sender, TurnState, TutorSession

LOGGER = logging.getLogger("session_controller")
if not LOGGER.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    LOGGER.addHandler(handler)
LOGGER.setLevel(logging.INFO)

Listener = Callable[["SessionController"], None]


@dataclass(frozen=True)
class SessionControllerConfig:
    """Configuration knobs for the turn-taking controller."""

    inactivity_timeout: float = DEFAULT_INACTIVITY_SECONDS
    capture_settle_delay: float = 0.2
    log_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.inactivity_timeout <= 0:
            raise ValueError("inactivity_timeout must be positive")
        if self.capture_settle_delay < 0:
            raise ValueError("capture_settle_delay must be >= 0")


class SessionController:
    """Owns the turn state, the message log, and the inactivity watchdog.

    All public methods are UI events and must be called from the event loop the
    controller runs on. Agent calls run in worker threads; speech callbacks may
    arrive from any thread and are re-queued onto the loop before they touch
    controller state. Every session carries a generation number so completions
    that arrive after a teardown are dropped.
    """

    def __init__(
        self,
        *,
        agent: ConversationAgent,
        speech: SpeechCapability,
        config: Optional[SessionControllerConfig] = None,
    ) -> None:
        self.agent = agent
        self.speech = speech
        self.config = config or SessionControllerConfig()

        self.state = TurnState.IDLE
        self.screen = Screen.TOPIC_SELECT
        self.topic: Optional[str] = None
        self.session: Optional[TutorSession] = None

        self._log = MessageLog()
        self._timer = InactivityTimer(self.on_inactivity_timeout, interval=self.config.inactivity_timeout)
        self._generation = 0
        self._turn_task: Optional[asyncio.Task] = None
        self._capture_seq = 0
        self._active_capture: Optional[int] = None
        self._settle_handle: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Listener] = []

        self._log_file = None
        if self.config.log_path is not None:
            self.config.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._log_file = self.config.log_path.open("a", encoding="utf-8")

    # ------------------------------------------------------------------
    # Presentation boundary

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self._log.snapshot()

    @property
    def mode(self) -> Optional[LearningMode]:
        return self.session.mode if self.session is not None else None

    @property
    def timer(self) -> InactivityTimer:
        return self._timer

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        self._teardown(reason="controller.close")
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    # ------------------------------------------------------------------
    # UI events

    def select_topic(self, topic: str) -> None:
        topic = topic.strip()
        if not topic:
            raise ValueError("topic must be non-empty")
        self._teardown(reason="topic.selected")
        self.topic = topic
        self.screen = Screen.MODE_SELECT
        self._record("topic.selected", topic=topic)
        self._notify()

    def start_session(self, topic: str, mode: LearningMode) -> asyncio.Task:
        topic = topic.strip()
        if not topic:
            raise ValueError("a topic must be chosen before starting a session")
        self._teardown(reason="session.replace")

        self.topic = topic
        self.session = TutorSession(
            topic=topic,
            mode=mode,
            agent_session=self.agent.create_session(mode),
            generation=self._generation,
        )
        self.screen = Screen.CHAT
        self._transition(TurnState.PROCESSING, reason="session.start", topic=topic, mode=mode.value)
        return self._spawn(self._run_greeting(self.session))

    def handle_user_utterance(self, text: str) -> Optional[asyncio.Task]:
        text = text.strip()
        if not text:
            return None
        if self.session is None or self.state in (TurnState.PROCESSING, TurnState.SPEAKING):
            self._record("utterance.ignored", turn_state=self.state.value)
            return None

        self._timer.cancel()
        if self.state is TurnState.LISTENING:
            self._stop_capture()
        return self._submit(self.session, text)

    def on_inactivity_timeout(self) -> Optional[asyncio.Task]:
        if self.session is None or self.state not in (TurnState.IDLE, TurnState.LISTENING):
            self._record("timeout.ignored", turn_state=self.state.value)
            return None

        self._timer.cancel()
        if self.state is TurnState.LISTENING:
            self._stop_capture()
        self._transition(TurnState.PROCESSING, reason="inactivity.timeout")
        return self._spawn(self._run_reply(self.session, TIMEOUT_SENTINEL, reason="hint"))

    def toggle_recording(self) -> None:
        if self.state is TurnState.LISTENING:
            self._stop_capture()
            self._settle_idle(reason="capture.stopped")
            return
        if self.session is None or self.state is not TurnState.IDLE:
            self._record("record.ignored", turn_state=self.state.value)
            return
        if not self.speech.capture_supported:
            raise CaptureUnsupportedError("Speech recognition not supported")

        loop = asyncio.get_running_loop()
        self._timer.cancel()
        self._capture_seq += 1
        capture_id = self._capture_seq
        self._active_capture = capture_id
        self._transition(TurnState.LISTENING, reason="capture.start", capture=capture_id)
        try:
            self.speech.listen(
                self._on_loop(loop, self._capture_result, capture_id),
                self._on_loop(loop, self._capture_error, capture_id),
                self._on_loop(loop, self._capture_end, capture_id),
            )
        except CaptureUnsupportedError:
            self._active_capture = None
            self._settle_idle(reason="capture.unsupported")
            raise

    def go_back(self) -> None:
        self._teardown(reason="navigation.back")
        if self.screen is Screen.CHAT:
            self.screen = Screen.MODE_SELECT
        elif self.screen is Screen.MODE_SELECT:
            self.screen = Screen.TOPIC_SELECT
            self.topic = None
        self._record("navigation.back", screen=self.screen.value)
        self._notify()

    # ------------------------------------------------------------------
    # Turn coroutines

    async def _run_greeting(self, session: TutorSession) -> None:
        await self._run_turn(
            session,
            lambda: asyncio.to_thread(self.agent.initialize, session.agent_session, session.topic),
            reason="greeting",
        )

    async def _run_reply(self, session: TutorSession, text: str, *, reason: str) -> None:
        await self._run_turn(
            session,
            lambda: asyncio.to_thread(self.agent.send, session.agent_session, text),
            reason=reason,
        )

    async def _run_turn(
        self,
        session: TutorSession,
        ask: Callable[[], Awaitable[str]],
        *,
        reason: str,
    ) -> None:
        try:
            reply = await ask()
            if not self._is_current(session):
                self._record("agent.stale", generation=session.generation)
                return
            self._append(Sender.TUTOR, reply)
            self._transition(TurnState.SPEAKING, reason=reason, text_preview=self._truncate(reply))
            await self._speak(reply)
        except Exception as exc:
            if not self._is_current(session):
                return
            self._record(
                "turn.error",
                stage=reason,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
        if self._is_current(session):
            self._settle_idle(reason=f"{reason}.complete")

    async def _speak(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        finished = loop.create_future()

        def complete() -> None:
            if not finished.done():
                finished.set_result(None)

        self.speech.speak(text, self._on_loop(loop, complete))
        await finished

    # ------------------------------------------------------------------
    # Capture completions (already on the loop)

    def _capture_result(self, capture_id: int, text: str) -> None:
        if capture_id != self._active_capture:
            self._record("capture.stale", capture=capture_id)
            return
        self._active_capture = None
        self.speech.stop_listening()
        if not text.strip():
            self._settle_idle(reason="capture.empty")
            return
        # The result is committed now; only a teardown may cancel the dispatch.
        self._transition(
            TurnState.PROCESSING,
            reason="capture.result",
            capture=capture_id,
            text_preview=self._truncate(text),
        )
        self._settle_handle = asyncio.get_running_loop().call_later(
            self.config.capture_settle_delay, self._dispatch_capture, self.session, text.strip()
        )

    def _dispatch_capture(self, session: TutorSession, text: str) -> None:
        self._settle_handle = None
        if not self._is_current(session):
            return
        self._submit(session, text)

    def _capture_error(self, capture_id: int, reason: str) -> None:
        if capture_id != self._active_capture:
            return
        self._active_capture = None
        self._settle_idle(reason="capture.error", error=reason)

    def _capture_end(self, capture_id: int) -> None:
        if capture_id != self._active_capture:
            return
        # Recognizer closed without reporting a result or an error.
        self._active_capture = None
        self._settle_idle(reason="capture.ended")

    # ------------------------------------------------------------------
    # Helpers

    def _settle_idle(self, *, reason: str, **metadata: Any) -> None:
        """Single exit for every finished or recovered turn: go Idle, re-arm the watchdog."""

        self._transition(TurnState.IDLE, reason=reason, **metadata)
        self._timer.arm()

    def _submit(self, session: TutorSession, text: str) -> asyncio.Task:
        self._append(Sender.CHILD, text)
        self._transition(TurnState.PROCESSING, reason="utterance", text_preview=self._truncate(text))
        return self._spawn(self._run_reply(session, text, reason="reply"))

    def _stop_capture(self) -> None:
        self._active_capture = None
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        self.speech.stop_listening()

    def _teardown(self, *, reason: str) -> None:
        self._timer.cancel()
        self.speech.stop_speaking()
        self._stop_capture()
        if self._turn_task is not None and not self._turn_task.done():
            self._turn_task.cancel()
        self._turn_task = None
        self._generation += 1
        self.session = None
        self._log.clear()
        if self.state is not TurnState.IDLE:
            self._transition(TurnState.IDLE, reason=reason)

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._turn_task = task
        return task

    def _is_current(self, session: TutorSession) -> bool:
        return self.session is session and session.generation == self._generation

    def _append(self, sender: Sender, text: str) -> None:
        message = self._log.append(sender, text)
        self._record("message", sender=sender.value, id=message.id, text_preview=self._truncate(text))
        self._notify()

    @staticmethod
    def _on_loop(loop: asyncio.AbstractEventLoop, handler: Callable[..., None], *bound: Any) -> Callable[..., None]:
        def callback(*args: Any) -> None:
            loop.call_soon_threadsafe(handler, *bound, *args)

        return callback

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                LOGGER.exception("Session listener failed")

    def _transition(self, state: TurnState, **metadata: Any) -> None:
        self.state = state
        self._emit({"state": state.value, **metadata})
        self._notify()

    def _record(self, event: str, **metadata: Any) -> None:
        self._emit({"event": event, **metadata})

    def _emit(self, fields: dict) -> None:
        payload = {"ts": datetime.now(timezone.utc).isoformat()}
        if self.session is not None:
            payload["session"] = self.session.generation
        payload.update(fields)
        line = json.dumps(payload, ensure_ascii=False)
        LOGGER.info(line)
        if self._log_file is not None:
            self._log_file.write(line + "\n")
            self._log_file.flush()

    @staticmethod
    def _truncate(text: str, *, limit: int = 120) -> str:
        text = text.strip()
        if len(text) <= limit:
            return text
        return text[: limit - 3] + "..."

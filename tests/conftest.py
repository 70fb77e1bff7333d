from __future__ import annotations

import asyncio
import threading
from typing import Callable, List, Optional

from controller import SessionController, SessionControllerConfig
from llm import ChatSession, LearningMode
from llm.personas import instruction_for


class FakeAgent:
    """In-memory tutor. Set ``gate`` to hold calls until the test releases it."""

    def __init__(self, greeting: str = "Hi! Let's talk about animals!", replies: Optional[List[str]] = None) -> None:
        self.greeting = greeting
        self.replies = list(replies or [])
        self.topics: List[str] = []
        self.sent: List[str] = []
        self.sessions: List[ChatSession] = []
        self.gate: Optional[threading.Event] = None

    def create_session(self, mode: LearningMode) -> ChatSession:
        session = ChatSession(mode=mode, instruction=instruction_for(mode))
        self.sessions.append(session)
        return session

    def initialize(self, session: ChatSession, topic: str) -> str:
        self.topics.append(topic)
        self._wait()
        return self.greeting

    def send(self, session: ChatSession, text: str) -> str:
        self.sent.append(text)
        self._wait()
        if self.replies:
            return self.replies.pop(0)
        return f"reply to {text}"

    def _wait(self) -> None:
        if self.gate is not None:
            self.gate.wait(timeout=5)


class FakeSpeech:
    """Speech capability double that records calls and lets tests finish them."""

    def __init__(self, *, auto_complete: bool = True, capture_supported: bool = True) -> None:
        self.auto_complete = auto_complete
        self.capture_supported = capture_supported
        self.spoken: List[str] = []
        self.listens: List[tuple] = []
        self.pending: Optional[Callable[[], None]] = None
        self.stop_listening_calls = 0
        self.stop_speaking_calls = 0

    def speak(self, text: str, on_complete: Callable[[], None]) -> None:
        self.spoken.append(text)
        if self.auto_complete:
            on_complete()
        else:
            self.pending = on_complete

    def finish_speaking(self) -> None:
        callback, self.pending = self.pending, None
        assert callback is not None, "nothing is being spoken"
        callback()

    def listen(self, on_result, on_error, on_end) -> None:
        self.listens.append((on_result, on_error, on_end))

    def stop_listening(self) -> None:
        self.stop_listening_calls += 1

    def stop_speaking(self) -> None:
        self.stop_speaking_calls += 1
        self.pending = None


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def make_controller(agent, speech, *, inactivity_timeout: float = 5.0) -> SessionController:
    config = SessionControllerConfig(inactivity_timeout=inactivity_timeout, capture_settle_delay=0.01)
    return SessionController(agent=agent, speech=speech, config=config)

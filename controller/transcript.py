"""Turn states, screens and the append-only message log shown to the child."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Tuple

from llm import ChatSession, LearningMode


class TurnState(Enum):
    IDLE = "Idle"
    LISTENING = "Listening"
    PROCESSING = "Processing"
    SPEAKING = "Speaking"


class Screen(Enum):
    TOPIC_SELECT = "topic_select"
    MODE_SELECT = "mode_select"
    CHAT = "chat"


class Sender(Enum):
    CHILD = "child"
    TUTOR = "tutor"


@dataclass(frozen=True)
class Message:
    """One chat bubble. ``id`` is only a rendering key."""

    sender: Sender
    text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class TutorSession:
    """Active topic/mode pair together with the agent conversation it owns."""

    topic: str
    mode: LearningMode
    agent_session: ChatSession
    generation: int


class MessageLog:
    """Ordered, append-only sequence of messages for the current session."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def append(self, sender: Sender, text: str) -> Message:
        message = Message(sender=sender, text=text)
        self._messages.append(message)
        return message

    def clear(self) -> None:
        self._messages = []

    def snapshot(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

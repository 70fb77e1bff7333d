"""Tutor conversation agent backed by an OpenAI-compatible chat endpoint."""

from typing import Protocol

from .personas import TIMEOUT_SENTINEL, LearningMode
from .retry import RetryPolicy, call_with_retry
from .tutor_client import ChatSession, TutorAgent, TutorAgentConfig


class ConversationAgent(Protocol):
    """What the session controller needs from a tutor backend.

    ``initialize`` and ``send`` must not raise: transport failures come back as
    friendly fallback text.
    """

    def create_session(self, mode: LearningMode) -> ChatSession:  # pragma: no cover - structural
        ...

    def initialize(self, session: ChatSession, topic: str) -> str:  # pragma: no cover - structural
        ...

    def send(self, session: ChatSession, text: str) -> str:  # pragma: no cover - structural
        ...


__all__ = [
    "TIMEOUT_SENTINEL",
    "LearningMode",
    "RetryPolicy",
    "call_with_retry",
    "ChatSession",
    "ConversationAgent",
    "TutorAgent",
    "TutorAgentConfig",
]

"""Tutor chat client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

try:
    import requests
except ImportError as exc:  # pragma: no cover - import guard
    raise ImportError(
        "The requests package is required for the tutor client. Install it with `uv pip install requests`."
    ) from exc

from .personas import (
    EMPTY_REPLY_FALLBACK,
    INIT_FALLBACK,
    SEND_FALLBACK,
    LearningMode,
    empty_greeting,
    instruction_for,
    opening_prompt,
)
from .retry import RetryPolicy, call_with_retry

LOGGER = logging.getLogger(__name__)

API_KEY_ENV = "TUTOR_LLM_API_KEY"


@dataclass(frozen=True)
class TutorAgentConfig:
    """Configuration for the :class:`TutorAgent`."""

    base_url: str = "http://127.0.0.1:8000/v1"
    model: str = "hugging-quants/Meta-Llama-3.1-8B-Instruct-GPTQ-INT4"
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 256
    timeout: float = 30.0
    max_history_turns: int = 12
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must be provided")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_history_turns < 1:
            raise ValueError("max_history_turns must be >= 1")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.getenv(API_KEY_ENV) or None)


@dataclass
class ChatSession:
    """One tutor conversation: the persona plus the exchanged turns so far."""

    mode: LearningMode
    instruction: str
    history: List[Dict[str, str]] = field(default_factory=list)

    def messages_for(self, text: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.instruction},
            *self.history,
            {"role": "user", "content": text},
        ]


class TutorAgent:
    """Conversation agent that never lets a transport failure reach the caller."""

    def __init__(
        self,
        config: TutorAgentConfig,
        *,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._session = http or requests.Session()
        self._sleep = sleep

    def create_session(self, mode: LearningMode) -> ChatSession:
        return ChatSession(mode=mode, instruction=instruction_for(mode))

    def initialize(self, session: ChatSession, topic: str) -> str:
        """Open the lesson and return the tutor's greeting."""

        try:
            reply = self._exchange(session, opening_prompt(topic, session.mode))
        except Exception as exc:
            LOGGER.error("Failed to initialise tutor chat: %s", exc)
            return INIT_FALLBACK
        return reply or empty_greeting(topic, session.mode)

    def send(self, session: ChatSession, text: str) -> str:
        """Forward one learner turn (or the timeout sentinel) and return the reply."""

        try:
            reply = self._exchange(session, text)
        except Exception as exc:
            LOGGER.error("Tutor chat request failed: %s", exc)
            return SEND_FALLBACK
        return reply or EMPTY_REPLY_FALLBACK

    def close(self) -> None:
        """Close the underlying HTTP session."""

        self._session.close()

    def _exchange(self, session: ChatSession, text: str) -> str:
        payload = self._build_payload(session, text)
        content = call_with_retry(
            lambda: self._post(payload),
            self.config.retry,
            sleep=self._sleep,
            label="tutor chat",
        )
        reply = content.strip()
        if reply:
            session.history.append({"role": "user", "content": text})
            session.history.append({"role": "assistant", "content": reply})
            # Only the newest max_history_turns exchanges are sent back to the model.
            del session.history[: -2 * self.config.max_history_turns]
        return reply

    def _post(self, payload: Dict[str, object]) -> str:
        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        response = self._session.post(
            f"{self.config.base_url}/chat/completions",
            json=payload,
            headers=headers,
            timeout=self.config.timeout,
        )
        if response.status_code != 200:
            raise RuntimeError(
                f"Tutor chat request failed with {response.status_code}: {response.text.strip()}"
            )
        return self._extract_content(response.json())

    def _build_payload(self, session: ChatSession, text: str) -> Dict[str, object]:
        cfg = self.config
        return {
            "model": cfg.model,
            "messages": session.messages_for(text),
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            "n": 1,
        }

    @staticmethod
    def _extract_content(data: Dict[str, object]) -> str:
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0]
            if isinstance(choice, dict):
                message = choice.get("message")
                if isinstance(message, dict):
                    content = message.get("content")
                    if isinstance(content, str):
                        return content
        return ""

    def __enter__(self) -> "TutorAgent":  # pragma: no cover - convenience
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        self.close()

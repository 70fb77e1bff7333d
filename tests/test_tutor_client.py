from __future__ import annotations

from typing import List, Optional

import pytest
import requests

from llm import TIMEOUT_SENTINEL, LearningMode, TutorAgent, TutorAgentConfig
from llm.personas import (
    CONVERSATION_INSTRUCTION,
    EMPTY_REPLY_FALLBACK,
    INIT_FALLBACK,
    SEND_FALLBACK,
    VOCABULARY_INSTRUCTION,
)


class FakeResponse:
    def __init__(self, content: Optional[str] = None, *, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self._content = content

    def json(self):
        if self._content is None:
            return {"choices": []}
        return {"choices": [{"message": {"role": "assistant", "content": self._content}}]}


class FakeHttp:
    """Replays queued responses; an Exception in the queue is raised instead."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url, *, json, headers, timeout):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


def make_agent(http: FakeHttp, naps: Optional[list] = None, **overrides) -> TutorAgent:
    overrides.setdefault("api_key", "")
    config = TutorAgentConfig(base_url="http://tutor.local/v1/", model="tutor-model", **overrides)
    return TutorAgent(config, http=http, sleep=(naps if naps is not None else []).append)


def test_initialize_uses_mode_persona_and_topic():
    http = FakeHttp(FakeResponse("Hello! Do you like cats? 🐱"))
    agent = make_agent(http)
    session = agent.create_session(LearningMode.CONVERSATION)

    assert agent.initialize(session, "Animals") == "Hello! Do you like cats? 🐱"
    call = http.calls[0]
    assert call["url"] == "http://tutor.local/v1/chat/completions"
    messages = call["json"]["messages"]
    assert messages[0] == {"role": "system", "content": CONVERSATION_INSTRUCTION}
    assert "Animals" in messages[-1]["content"]
    assert call["json"]["model"] == "tutor-model"
    assert "Authorization" not in call["headers"]


def test_vocabulary_session_uses_vocabulary_persona():
    http = FakeHttp(FakeResponse("Apple. Apple. Apple. 🍎"))
    agent = make_agent(http)
    session = agent.create_session(LearningMode.VOCABULARY)
    agent.initialize(session, "Food")
    assert http.calls[0]["json"]["messages"][0]["content"] == VOCABULARY_INSTRUCTION
    assert "Food" in http.calls[0]["json"]["messages"][-1]["content"]


def test_send_keeps_history_and_forwards_sentinel_verbatim():
    http = FakeHttp(FakeResponse("Hi! What is your name?"), FakeResponse("Con tên là gì? What is your name?"))
    agent = make_agent(http)
    session = agent.create_session(LearningMode.CONVERSATION)
    agent.initialize(session, "Family")

    assert agent.send(session, TIMEOUT_SENTINEL) == "Con tên là gì? What is your name?"
    messages = http.calls[1]["json"]["messages"]
    assert messages[-1] == {"role": "user", "content": TIMEOUT_SENTINEL}
    assert messages[-2] == {"role": "assistant", "content": "Hi! What is your name?"}
    assert len(session.history) == 4


def test_initialize_falls_back_after_three_failed_attempts():
    naps: list = []
    http = FakeHttp(
        requests.ConnectionError("down"),
        requests.Timeout("slow"),
        FakeResponse(status_code=503, text="busy"),
    )
    agent = make_agent(http, naps)
    session = agent.create_session(LearningMode.CONVERSATION)

    assert agent.initialize(session, "Animals") == INIT_FALLBACK
    assert len(http.calls) == 3
    assert naps == pytest.approx([0.5, 0.75])
    assert session.history == []


def test_send_falls_back_after_three_failed_attempts():
    naps: list = []
    http = FakeHttp(*(requests.ConnectionError("down") for _ in range(3)))
    agent = make_agent(http, naps)
    session = agent.create_session(LearningMode.VOCABULARY)

    assert agent.send(session, "apple") == SEND_FALLBACK
    assert len(http.calls) == 3
    assert naps == pytest.approx([0.5, 0.75])


def test_send_recovers_on_retry():
    naps: list = []
    http = FakeHttp(requests.ConnectionError("down"), FakeResponse("Good job! 🎉 Banana. Banana. Banana."))
    agent = make_agent(http, naps)
    session = agent.create_session(LearningMode.VOCABULARY)

    assert agent.send(session, "apple") == "Good job! 🎉 Banana. Banana. Banana."
    assert naps == pytest.approx([0.5])


def test_empty_replies_use_placeholders():
    http = FakeHttp(FakeResponse("   "), FakeResponse(None))
    agent = make_agent(http)
    session = agent.create_session(LearningMode.CONVERSATION)

    assert agent.initialize(session, "Toys") == "Hello! Let's talk about Toys!"
    assert agent.send(session, "car") == EMPTY_REPLY_FALLBACK
    assert session.history == []


def test_bearer_header_from_config():
    http = FakeHttp(FakeResponse("Hi!"))
    agent = make_agent(http, api_key="secret")
    agent.initialize(agent.create_session(LearningMode.CONVERSATION), "Animals")
    assert http.calls[0]["headers"]["Authorization"] == "Bearer secret"


def test_api_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("TUTOR_LLM_API_KEY", "from-env")
    assert TutorAgentConfig().api_key == "from-env"


def test_config_validation():
    with pytest.raises(ValueError):
        TutorAgentConfig(base_url="")
    with pytest.raises(ValueError):
        TutorAgentConfig(max_tokens=0)


def test_close_closes_http_session():
    http = FakeHttp()
    make_agent(http).close()
    assert http.closed


def test_history_keeps_only_the_newest_turns():
    http = FakeHttp(*(FakeResponse(f"hint {n}") for n in range(5)))
    agent = make_agent(http, max_history_turns=2)
    session = agent.create_session(LearningMode.CONVERSATION)

    for _ in range(5):
        agent.send(session, TIMEOUT_SENTINEL)

    assert [m["content"] for m in session.history] == [TIMEOUT_SENTINEL, "hint 3", TIMEOUT_SENTINEL, "hint 4"]
    last_messages = http.calls[-1]["json"]["messages"]
    assert len(last_messages) == 1 + 4 + 1
    with pytest.raises(ValueError):
        TutorAgentConfig(max_history_turns=0)

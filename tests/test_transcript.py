from __future__ import annotations

import dataclasses

import pytest

from controller import MessageLog, Sender


def test_log_keeps_append_order_and_unique_ids():
    log = MessageLog()
    first = log.append(Sender.TUTOR, "Hi! What is your name?")
    second = log.append(Sender.CHILD, "Lan")

    assert [m.text for m in log] == ["Hi! What is your name?", "Lan"]
    assert log.snapshot()[-1] is second
    assert first.id != second.id
    assert len(log) == 2


def test_snapshot_is_unaffected_by_later_appends():
    log = MessageLog()
    log.append(Sender.TUTOR, "Apple. Apple. Apple.")
    snapshot = log.snapshot()
    log.append(Sender.CHILD, "apple")
    assert len(snapshot) == 1

    log.clear()
    assert log.snapshot() == ()
    assert len(log) == 0


def test_messages_are_immutable():
    message = MessageLog().append(Sender.CHILD, "cat")
    with pytest.raises(dataclasses.FrozenInstanceError):
        message.text = "dog"

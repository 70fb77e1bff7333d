from __future__ import annotations

import pytest

from controller import CaptureUnsupportedError, TextOnlySpeech
from tts import clean_for_speech


@pytest.mark.parametrize(
    "raw, spoken",
    [
        ("Apple. Apple. Apple. 🍎", "Apple. Apple. Apple."),
        ("Good job! 🎉 Next word: Lion 🦁", "Good job! Next word: Lion"),
        ("😊 Almost! We say: 'I like cats'.", "Almost! We say: 'I like cats'."),
        ("Con tên là gì? What is your name?", "Con tên là gì? What is your name?"),
        ("❤️ Love ✨", "Love"),
        ("👨‍👩‍👧 Family", "Family"),
    ],
)
def test_clean_for_speech_drops_pictographs(raw, spoken):
    assert clean_for_speech(raw) == spoken


def test_clean_for_speech_of_only_emoji_is_empty():
    assert clean_for_speech(" 🌟 🍎 ") == ""


def test_text_only_speech_prints_and_completes():
    printed = []
    done = []
    speech = TextOnlySpeech(printer=printed.append)

    speech.speak("Hello! 👋 Let us play.", lambda: done.append(True))
    assert printed == ["(speaking) Hello! Let us play."]
    assert done == [True]


def test_text_only_speech_cannot_listen():
    speech = TextOnlySpeech(printer=lambda _: None)
    assert speech.capture_supported is False
    with pytest.raises(CaptureUnsupportedError):
        speech.listen(lambda _: None, lambda _: None, lambda: None)
    speech.stop_listening()
    speech.stop_speaking()

"""Speech capture/synthesis contract used by the session controller."""

from __future__ import annotations

from typing import Callable, Protocol

from tts import clean_for_speech

ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[str], None]
DoneCallback = Callable[[], None]


class CaptureUnsupportedError(RuntimeError):
    """Raised when recording is requested on a platform without a recognizer."""


class SpeechCapability(Protocol):
    """Capture one utterance or speak one utterance.

    ``listen`` resolves with exactly one of ``on_result``/``on_error`` and then
    always calls ``on_end``. ``speak`` cancels any synthesis in flight before
    starting and calls ``on_complete`` once playback ends. Callbacks may fire from
    any thread. Stop methods are idempotent.
    """

    @property
    def capture_supported(self) -> bool:  # pragma: no cover - structural
        ...

    def listen(self, on_result: ResultCallback, on_error: ErrorCallback, on_end: DoneCallback) -> None:  # pragma: no cover - structural
        ...

    def speak(self, text: str, on_complete: DoneCallback) -> None:  # pragma: no cover - structural
        ...

    def stop_listening(self) -> None:  # pragma: no cover - structural
        ...

    def stop_speaking(self) -> None:  # pragma: no cover - structural
        ...


class TextOnlySpeech:
    """Fallback capability for typed sessions: prints tutor lines, cannot record."""

    capture_supported = False

    def __init__(self, printer: Callable[[str], None] = print) -> None:
        self._printer = printer

    def listen(self, on_result: ResultCallback, on_error: ErrorCallback, on_end: DoneCallback) -> None:
        raise CaptureUnsupportedError("Speech recognition not supported")

    def speak(self, text: str, on_complete: DoneCallback) -> None:
        cleaned = clean_for_speech(text)
        if cleaned:
            self._printer(f"(speaking) {cleaned}")
        on_complete()

    def stop_listening(self) -> None:
        return None

    def stop_speaking(self) -> None:
        return None

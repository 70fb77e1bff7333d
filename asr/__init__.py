"""Speech recognition for captured learner utterances."""

from typing import Protocol

from .faster_whisper import FasterWhisperConfig, FasterWhisperTranscriber, TranscriptionResult


class ASRTranscriber(Protocol):
    """Protocol shared by ASR backends."""

    def transcribe_pcm(self, pcm: bytes, *, sample_rate: int = 16_000) -> TranscriptionResult:  # pragma: no cover - structural
        ...


__all__ = [
    "TranscriptionResult",
    "FasterWhisperConfig",
    "FasterWhisperTranscriber",
    "ASRTranscriber",
]

"""Faster-Whisper transcription of a single captured utterance."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

try:
    from faster_whisper import WhisperModel  # type: ignore
except ImportError:  # pragma: no cover - import guard
    WhisperModel = None


@dataclass(frozen=True)
class TranscriptionResult:
    """Text recognised from one utterance plus backend metadata."""

    text: str
    segments: List[str] = field(default_factory=list)
    metadata: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class FasterWhisperConfig:
    """Runtime options for Faster-Whisper.

    ``model`` is either a local model directory or a model size name
    (``"base.en"``, ``"small"``...) that faster-whisper downloads on first use.
    Children's speech is short, so greedy decoding on CPU is the default.
    """

    model: str = "base.en"
    device: str = "cpu"
    compute_type: str = "int8"
    language: Optional[str] = "en"
    beam_size: int = 1
    temperature: float = 0.0
    vad_filter: bool = False

    def __post_init__(self) -> None:
        if not self.model:
            raise ValueError("model must be provided")
        if self.beam_size < 1:
            raise ValueError("beam_size must be >= 1")
        looks_like_path = "/" in self.model or self.model.startswith(".")
        if looks_like_path and not Path(self.model).exists():
            raise FileNotFoundError(f"Faster-Whisper model directory not found: {self.model}")


class FasterWhisperTranscriber:
    """Transcribe 16-bit mono PCM with the Faster-Whisper Python bindings."""

    def __init__(self, config: FasterWhisperConfig) -> None:
        self.config = config
        self._model: Optional[WhisperModel] = None
        self._model_lock = threading.Lock()

    def transcribe_pcm(self, pcm: bytes, *, sample_rate: int = 16_000) -> TranscriptionResult:
        if sample_rate != 16_000:
            raise ValueError("Faster-Whisper expects 16 kHz audio")
        if not pcm:
            return TranscriptionResult(text="")

        audio = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
        model = self._ensure_model()
        segments_iter, info = model.transcribe(
            audio,
            beam_size=self.config.beam_size,
            temperature=self.config.temperature,
            language=self.config.language,
            vad_filter=self.config.vad_filter,
        )

        segments: List[str] = []
        for segment in segments_iter:
            txt = (segment.text or "").strip()
            if txt:
                segments.append(txt)

        return TranscriptionResult(
            text=" ".join(segments).strip(),
            segments=segments,
            metadata={"language": info.language, "duration": info.duration},
        )

    def warm_up(self) -> None:
        """Load the model ahead of the first capture."""

        self._ensure_model()

    def _ensure_model(self) -> WhisperModel:
        if self._model is not None:
            return self._model
        with self._model_lock:
            if self._model is None:
                if WhisperModel is None:
                    raise ImportError(
                        "faster-whisper is not installed. Install it with `uv pip install faster-whisper`."
                    )
                self._model = WhisperModel(
                    self.config.model,
                    device=self.config.device,
                    compute_type=self.config.compute_type,
                )
            return self._model

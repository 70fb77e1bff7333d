"""WebRTC VAD endpointing that cuts one learner utterance out of live PCM."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import webrtcvad  # type: ignore

BYTES_PER_SAMPLE = 2


@dataclass(frozen=True)
class UtteranceConfig:
    """Endpointing knobs for a single push-to-talk capture.

    Attributes:
        sample_rate: PCM sample rate in Hz. WebRTC VAD supports 8000, 16000,
            32000, and 48000.
        frame_duration_ms: Frame size in milliseconds (10, 20 or 30).
        aggressiveness: VAD aggressiveness level (0..3).
        start_trigger_frames: Consecutive speech frames that open the utterance.
        stop_trigger_frames: Consecutive non-speech frames that close it. Kept
            long because children pause mid-sentence.
        preroll_frames: Frames kept from before the trigger so the first
            syllable is not clipped.
        no_speech_timeout: Seconds to wait for any speech before giving up.
        max_utterance_seconds: Hard cap on one capture.
    """

    sample_rate: int = 16_000
    frame_duration_ms: int = 30
    aggressiveness: int = 2
    start_trigger_frames: int = 3
    stop_trigger_frames: int = 30
    preroll_frames: int = 5
    no_speech_timeout: float = 8.0
    max_utterance_seconds: float = 15.0

    def __post_init__(self) -> None:
        if self.sample_rate not in (8000, 16000, 32000, 48000):
            raise ValueError("sample_rate must be one of 8000, 16000, 32000, 48000")
        if self.frame_duration_ms not in (10, 20, 30):
            raise ValueError("frame_duration_ms must be 10, 20, or 30")
        if not (0 <= self.aggressiveness <= 3):
            raise ValueError("aggressiveness must be between 0 and 3")
        if self.start_trigger_frames < 1 or self.stop_trigger_frames < 1:
            raise ValueError("trigger frame counts must be >= 1")
        if self.no_speech_timeout <= 0 or self.max_utterance_seconds <= 0:
            raise ValueError("capture timeouts must be positive")

    @property
    def frame_bytes(self) -> int:
        return int(self.sample_rate * self.frame_duration_ms / 1000) * BYTES_PER_SAMPLE


class UtteranceDetector:
    """Feed microphone PCM in; get back the utterance once the child stops talking."""

    def __init__(self, config: UtteranceConfig, *, vad: Optional[object] = None) -> None:
        self.config = config
        self._vad = vad if vad is not None else webrtcvad.Vad(config.aggressiveness)
        self._frame_bytes = config.frame_bytes
        self._frame_s = config.frame_duration_ms / 1000.0

        self._pending = bytearray()
        self._preroll: Deque[bytes] = deque(maxlen=config.start_trigger_frames + config.preroll_frames)
        self._utterance = bytearray()
        self._speech_run = 0
        self._silence_run = 0
        self._frames_seen = 0
        self._active = False
        self._done = False

    @property
    def speech_started(self) -> bool:
        return self._active

    @property
    def elapsed_seconds(self) -> float:
        return self._frames_seen * self._frame_s

    def timed_out(self) -> bool:
        """True once the no-speech window or the utterance cap has been exceeded."""

        if not self._active:
            return self.elapsed_seconds >= self.config.no_speech_timeout
        return len(self._utterance) / (self.config.sample_rate * BYTES_PER_SAMPLE) >= self.config.max_utterance_seconds

    def add_audio(self, pcm: bytes) -> Optional[bytes]:
        """Consume ``pcm``; return the finished utterance when the end is detected."""

        if self._done or not pcm:
            return None
        self._pending.extend(pcm)

        while len(self._pending) >= self._frame_bytes:
            frame = bytes(self._pending[: self._frame_bytes])
            del self._pending[: self._frame_bytes]
            self._frames_seen += 1

            if self._vad.is_speech(frame, self.config.sample_rate):
                self._speech_run += 1
                self._silence_run = 0
            else:
                self._speech_run = 0
                self._silence_run += 1

            if not self._active:
                self._preroll.append(frame)
                if self._speech_run >= self.config.start_trigger_frames:
                    self._active = True
                    self._utterance.extend(b"".join(self._preroll))
                    self._preroll.clear()
                continue

            self._utterance.extend(frame)
            if self._silence_run >= self.config.stop_trigger_frames:
                return self._finish(trailing_silence=self._silence_run)
        return None

    def force_close(self) -> Optional[bytes]:
        """Return whatever speech was captured so far, or ``None`` if none was."""

        if self._done or not self._active:
            self._done = True
            return None
        return self._finish(trailing_silence=self._silence_run)

    def _finish(self, *, trailing_silence: int) -> bytes:
        self._done = True
        end = len(self._utterance) - trailing_silence * self._frame_bytes
        return bytes(self._utterance[: max(0, end)])

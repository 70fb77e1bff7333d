"""Microphone/speaker implementation of the speech capability.

Capture reads 16 kHz mono PCM from the default input device, cuts one utterance
out with WebRTC VAD and hands it to the ASR backend. Synthesis goes through
Kokoro and plays back on the default output device. Both run on worker threads
and report through the callbacks, so the caller must marshal them onto its own
loop.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np

try:
    import sounddevice as sd  # type: ignore
except (ImportError, OSError):  # pragma: no cover - PortAudio missing
    sd = None

from asr import ASRTranscriber
from tts import KokoroStreamer

from .speech import DoneCallback, ErrorCallback, ResultCallback
from .utterance_detector import UtteranceConfig, UtteranceDetector

LOGGER = logging.getLogger(__name__)

Device = Union[int, str, None]


@dataclass(frozen=True)
class LocalSpeechConfig:
    """Audio device selection and capture endpointing."""

    input_device: Device = None
    output_device: Device = None
    utterance: UtteranceConfig = field(default_factory=UtteranceConfig)
    release_timeout: float = 1.0

    def __post_init__(self) -> None:
        if self.release_timeout <= 0:
            raise ValueError("release_timeout must be positive")


class LocalSpeech:
    """Push-to-talk capture and spoken replies on the local sound card."""

    def __init__(
        self,
        *,
        transcriber: ASRTranscriber,
        synthesizer: KokoroStreamer,
        config: Optional[LocalSpeechConfig] = None,
    ) -> None:
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.config = config or LocalSpeechConfig()

        self._capture_stop: Optional[threading.Event] = None
        self._capture_released: Optional[threading.Event] = None
        self._speak_cancel: Optional[threading.Event] = None
        self._lock = threading.Lock()

    @property
    def capture_supported(self) -> bool:
        return sd is not None

    # ------------------------------------------------------------------
    # Capture

    def listen(self, on_result: ResultCallback, on_error: ErrorCallback, on_end: DoneCallback) -> None:
        if sd is None:
            on_error("Speech recognition not supported")
            on_end()
            return
        stop = threading.Event()
        released = threading.Event()
        with self._lock:
            if self._capture_stop is not None:
                self._capture_stop.set()
            previous = self._capture_released
            self._capture_stop = stop
            self._capture_released = released
        # Only one input stream may be open at a time.
        if previous is not None and not previous.wait(timeout=self.config.release_timeout):
            LOGGER.warning("Previous capture still holds the input stream")
        thread = threading.Thread(
            target=self._capture,
            args=(stop, released, on_result, on_error, on_end),
            name="speech-capture",
            daemon=True,
        )
        thread.start()

    def stop_listening(self) -> None:
        with self._lock:
            if self._capture_stop is not None:
                self._capture_stop.set()
                self._capture_stop = None

    def _capture(
        self,
        stop: threading.Event,
        released: threading.Event,
        on_result: ResultCallback,
        on_error: ErrorCallback,
        on_end: DoneCallback,
    ) -> None:
        cfg = self.config.utterance
        try:
            try:
                utterance = self._record_utterance(stop)
            finally:
                released.set()
            if stop.is_set():
                on_error("aborted")
                return
            if not utterance:
                on_error("no-speech")
                return
            result = self.transcriber.transcribe_pcm(utterance, sample_rate=cfg.sample_rate)
            if not result.text.strip():
                on_error("no-match")
                return
            on_result(result.text.strip())
        except Exception as exc:
            LOGGER.warning("Capture failed: %s", exc)
            on_error(str(exc))
        finally:
            on_end()

    def _record_utterance(self, stop: threading.Event) -> Optional[bytes]:
        cfg = self.config.utterance
        detector = UtteranceDetector(cfg)
        block = cfg.frame_bytes // 2
        with sd.RawInputStream(
            samplerate=cfg.sample_rate,
            blocksize=block,
            channels=1,
            dtype="int16",
            device=self.config.input_device,
        ) as stream:
            while not stop.is_set():
                data, overflowed = stream.read(block)
                if overflowed:
                    LOGGER.debug("Input overflow during capture")
                utterance = detector.add_audio(bytes(data))
                if utterance is not None:
                    return utterance
                if detector.timed_out():
                    return detector.force_close()
        return None

    # ------------------------------------------------------------------
    # Synthesis

    def speak(self, text: str, on_complete: DoneCallback) -> None:
        self.stop_speaking()
        cancel = threading.Event()
        with self._lock:
            self._speak_cancel = cancel
        thread = threading.Thread(
            target=self._speak,
            args=(text, cancel, on_complete),
            name="speech-output",
            daemon=True,
        )
        thread.start()

    def stop_speaking(self) -> None:
        with self._lock:
            cancel, self._speak_cancel = self._speak_cancel, None
        if cancel is None:
            return
        cancel.set()
        if sd is not None:
            sd.stop()

    def _speak(self, text: str, cancel: threading.Event, on_complete: DoneCallback) -> None:
        try:
            speech = self.synthesizer.synthesize(text, cancel=cancel)
            if speech is not None and not cancel.is_set():
                if sd is None:
                    raise ImportError(
                        "sounddevice is not available. Install it with `uv pip install sounddevice` and PortAudio."
                    )
                samples = np.frombuffer(speech.pcm, dtype=np.int16)
                sd.play(samples, samplerate=speech.sample_rate, device=self.config.output_device)
                sd.wait()
        except Exception as exc:
            LOGGER.warning("Speech output failed: %s", exc)
        if cancel.is_set():
            return
        with self._lock:
            if self._speak_cancel is cancel:
                self._speak_cancel = None
        on_complete()

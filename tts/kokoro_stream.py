"""Streaming client for Kokoro-FastAPI's OpenAI-compatible TTS endpoint."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

try:
    import requests
except ImportError as exc:  # pragma: no cover - import guard
    raise ImportError(
        "The requests package is required for the Kokoro TTS client. Install it with `uv pip install requests`."
    ) from exc

from .speech_text import clean_for_speech


@dataclass(frozen=True)
class KokoroConfig:
    """Runtime configuration for synthesising tutor replies with Kokoro-FastAPI.

    ``speed`` defaults below 1.0 so replies are delivered slowly enough for
    young listeners. Raw 16-bit PCM is requested so playback needs no decoding.
    """

    base_url: str = "http://127.0.0.1:8880/v1"
    endpoint: str = "/audio/speech"
    model: str = "kokoro"
    voice: Optional[str] = "af_bella"
    speed: float = 0.85
    sample_rate: int = 24_000
    stream_chunk_bytes: int = 32_768
    connect_timeout: float = 5.0
    read_timeout: float = 60.0
    extra_payload: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must be provided")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

        if not self.endpoint:
            raise ValueError("endpoint must be provided")
        if not self.endpoint.startswith("/"):
            object.__setattr__(self, "endpoint", f"/{self.endpoint}")

        if not self.model:
            raise ValueError("model must be provided")
        if self.speed <= 0:
            raise ValueError("speed must be positive")
        if self.stream_chunk_bytes <= 0:
            raise ValueError("stream_chunk_bytes must be positive")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("timeouts must be positive")

    def build_payload(self, text: str) -> Dict[str, object]:
        if not text or not text.strip():
            raise ValueError("text to synthesise must be non-empty")
        payload: Dict[str, object] = dict(self.extra_payload)
        payload.setdefault("model", self.model)
        payload["input"] = text
        payload["response_format"] = "pcm"
        if self.voice:
            payload.setdefault("voice", self.voice)
        payload.setdefault("speed", self.speed)
        return payload

    def build_url(self) -> str:
        return f"{self.base_url}{self.endpoint}"


@dataclass(frozen=True)
class SynthesizedSpeech:
    """A fully synthesised utterance ready for playback."""

    text: str
    pcm: bytes
    sample_rate: int
    first_chunk_latency_s: Optional[float]
    elapsed_s: float


class KokoroStreamer:
    """Client for synthesising one tutor utterance at a time."""

    def __init__(self, config: KokoroConfig, *, http: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = http or requests.Session()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "KokoroStreamer":  # pragma: no cover - convenience
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        self.close()

    def synthesize(
        self,
        text: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[SynthesizedSpeech]:
        """Return PCM for ``text`` or ``None`` when nothing is left to say or ``cancel`` is set."""

        spoken = clean_for_speech(text)
        if not spoken:
            return None

        start = time.monotonic()
        first_chunk_latency: Optional[float] = None
        buffer = bytearray()
        for chunk in self.stream_pcm(spoken):
            if cancel is not None and cancel.is_set():
                return None
            if first_chunk_latency is None:
                first_chunk_latency = time.monotonic() - start
            buffer.extend(chunk)

        if len(buffer) % 2:
            # Drop a dangling byte so the buffer holds whole int16 samples.
            del buffer[-1]
        if not buffer:
            raise RuntimeError("Kokoro synthesis returned no audio data")
        return SynthesizedSpeech(
            text=spoken,
            pcm=bytes(buffer),
            sample_rate=self.config.sample_rate,
            first_chunk_latency_s=first_chunk_latency,
            elapsed_s=time.monotonic() - start,
        )

    def stream_pcm(self, text: str) -> Iterator[bytes]:
        """Yield raw PCM chunks as soon as Kokoro produces them."""

        response = self._session.post(
            self.config.build_url(),
            json=self.config.build_payload(text),
            headers={"accept": "application/octet-stream"},
            stream=True,
            timeout=(self.config.connect_timeout, self.config.read_timeout),
        )
        try:
            if response.status_code >= 400:
                raise RuntimeError(
                    f"Kokoro TTS request failed with status {response.status_code}: "
                    f"{self._extract_error_detail(response)}"
                )
            content_type = response.headers.get("Content-Type")
            if content_type and "application/json" in content_type.lower():
                raise RuntimeError(
                    f"Kokoro TTS returned JSON payload instead of audio: {self._extract_error_detail(response)}"
                )
            for raw_chunk in response.iter_content(chunk_size=self.config.stream_chunk_bytes):
                if raw_chunk:
                    yield raw_chunk
        finally:
            response.close()

    @staticmethod
    def _extract_error_detail(response: requests.Response) -> str:
        try:
            return str(response.json())
        except ValueError:
            return response.text[:400]

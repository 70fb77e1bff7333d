"""Text-to-speech utilities for Kokoro-FastAPI."""

from .kokoro_stream import KokoroConfig, KokoroStreamer, SynthesizedSpeech
from .speech_text import clean_for_speech

__all__ = [
    "KokoroConfig",
    "KokoroStreamer",
    "SynthesizedSpeech",
    "clean_for_speech",
]

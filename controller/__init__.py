"""Turn-taking controller for spoken tutoring sessions.

The microphone/speaker capability lives in :mod:`controller.local_speech` and is
not imported here so the controller can run without audio libraries.
"""

from .inactivity_timer import DEFAULT_INACTIVITY_SECONDS, InactivityTimer
from .session_controller import SessionController, SessionControllerConfig
from .speech import CaptureUnsupportedError, SpeechCapability, TextOnlySpeech
from .transcript import Message, MessageLog, Screen, Sender, TurnState, TutorSession

__all__ = [
    "DEFAULT_INACTIVITY_SECONDS",
    "InactivityTimer",
    "SessionController",
    "SessionControllerConfig",
    "CaptureUnsupportedError",
    "SpeechCapability",
    "TextOnlySpeech",
    "Message",
    "MessageLog",
    "Screen",
    "Sender",
    "TurnState",
    "TutorSession",
]

from .loop import RecognitionLoop, RecognizerUnit
from .speech_service import (
    ContinuousRecognitionSession,
    Event,
    SpeechConfig,
    SpeechRecognizer,
    system_speech_language,
)

__all__ = [
    "ContinuousRecognitionSession",
    "Event",
    "RecognitionLoop",
    "RecognizerUnit",
    "SpeechConfig",
    "SpeechRecognizer",
    "system_speech_language",
]

from __future__ import annotations


class AnimalSpeechError(Exception):
    """Base class for application errors."""


class PermissionDenied(AnimalSpeechError):
    """Microphone access was declined by the user or a system privacy setting."""


class CaptureUnavailable(AnimalSpeechError):
    """The audio capture backend (PortAudio) cannot be loaded on this system."""


class NoDevice(AnimalSpeechError):
    """No audio capture device is present."""


class UnclassifiedCaptureError(AnimalSpeechError):
    """A capture failure outside the known categories."""


class ConstraintCompilationFailure(AnimalSpeechError):
    """The recognizer rejected its constraint set or could not load a model for it."""


class RecognizerClosed(AnimalSpeechError):
    pass

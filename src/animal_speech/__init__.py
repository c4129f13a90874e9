"""Say an animal name, see the animal."""

from .core.models import CompletionStatus, Confidence, RecognitionResult, RecognizerState
from .core.vocabulary import VOCABULARY, Vocabulary, normalize

__all__ = [
    "CompletionStatus",
    "Confidence",
    "RecognitionResult",
    "RecognizerState",
    "VOCABULARY",
    "Vocabulary",
    "normalize",
]

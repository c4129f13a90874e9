from .models import (
    CompletionStatus,
    Confidence,
    DisplayState,
    ListConstraint,
    LoopState,
    LoopUpdate,
    RecognitionResult,
    RecognizerState,
    UpdateKind,
)
from .vocabulary import ANIMAL_NAMES, CONSTRAINT_TAG, VOCABULARY, Vocabulary, normalize

__all__ = [
    "ANIMAL_NAMES",
    "CONSTRAINT_TAG",
    "CompletionStatus",
    "Confidence",
    "DisplayState",
    "ListConstraint",
    "LoopState",
    "LoopUpdate",
    "RecognitionResult",
    "RecognizerState",
    "UpdateKind",
    "VOCABULARY",
    "Vocabulary",
    "normalize",
]

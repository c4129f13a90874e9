from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from animal_speech.core.models import CompletionStatus, Confidence, RecognitionResult, RecognizerState
from animal_speech.errors import RecognizerClosed

from .speech_service import ContinuousRecognitionSession, SpeechConfig, SpeechRecognizer, build_grammar


def load_transcript(path: Path) -> list[RecognitionResult]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("Transcript JSON must be a list of utterances.")
    return [_parse_utterance(item, index) for index, item in enumerate(raw)]


def _parse_utterance(item: Any, index: int) -> RecognitionResult:
    if isinstance(item, str):
        return RecognitionResult(text=item, confidence=Confidence.HIGH)
    if not isinstance(item, dict):
        raise ValueError(f"Utterance #{index} must be a string or an object.")
    text = item.get("text")
    if not isinstance(text, str):
        raise ValueError(f"Utterance #{index} needs a text string.")
    confidence_value = str(item.get("confidence", Confidence.HIGH.value)).lower().strip()
    try:
        confidence = Confidence(confidence_value)
    except ValueError as exc:
        raise ValueError(f"Utterance #{index} has invalid confidence={confidence_value!r}") from exc
    return RecognitionResult(text=text, confidence=confidence)


class TranscriptSession(ContinuousRecognitionSession):
    """Plays a recorded transcript once, then leaves the recognizer paused."""

    def _run(self) -> None:
        recognizer = self.recognizer
        status = CompletionStatus.SUCCESS
        for result in recognizer.transcript:
            if self._stop_event.is_set():
                status = CompletionStatus.USER_CANCELED
                break
            recognizer._set_state(RecognizerState.PROCESSING)
            self.result_generated.emit(self, result)
        if recognizer.state != RecognizerState.CLOSED:
            recognizer._set_state(RecognizerState.PAUSED)
        self.completed.emit(self, status)


class TranscriptRecognizer(SpeechRecognizer):
    """Recognizer stand-in fed from a transcript instead of the microphone."""

    session_class = TranscriptSession

    def __init__(
        self,
        transcript: Sequence[RecognitionResult],
        language: str | None = None,
        config: SpeechConfig | None = None,
    ) -> None:
        super().__init__(language=language, config=config)
        self.transcript = tuple(transcript)

    def compile_constraints(self) -> None:
        if self.state == RecognizerState.CLOSED:
            raise RecognizerClosed("Recognizer has been closed.")
        build_grammar(self.constraints)
        self._compiled = True

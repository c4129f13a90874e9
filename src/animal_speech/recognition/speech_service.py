from __future__ import annotations

import json
import locale
import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable

from animal_speech.audio import AudioInputConfig, AudioInputManager, classify_capture_error, mix_to_mono
from animal_speech.core.models import (
    CompletionStatus,
    Confidence,
    ListConstraint,
    RecognitionResult,
    RecognizerState,
)
from animal_speech.errors import ConstraintCompilationFailure, RecognizerClosed

try:
    import vosk
except Exception:  # pragma: no cover - runtime environment dependent
    vosk = None

logger = logging.getLogger(__name__)

UNKNOWN_WORD = "[unk]"
DEFAULT_LANGUAGE = "en-us"


@dataclass(slots=True)
class SpeechConfig:
    model_path: Path | None = None
    sample_rate: int = 16000
    block_size: int = 4000
    device: int | None = None
    silence_timeout_seconds: float = 20.0
    high_confidence: float = 0.90
    medium_confidence: float = 0.70
    low_confidence: float = 0.40


class Event:
    """Thread-safe multicast callback list."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[..., Any]] = []
        self._lock = threading.Lock()

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def subscribe(self, handler: Callable[..., Any]) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Callable[..., Any]) -> bool:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def emit(self, *args: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(*args)


def system_speech_language() -> str:
    """Language tag of the user's locale in Vosk's form, e.g. ``en_US`` -> ``en-us``."""
    try:
        name = locale.getlocale()[0]
    except ValueError:
        name = None
    if not name or name in ("C", "POSIX"):
        return DEFAULT_LANGUAGE
    return name.split(".")[0].replace("_", "-").lower()


def build_grammar(constraints: Iterable[ListConstraint]) -> str:
    words: dict[str, None] = {}
    for constraint in constraints:
        if not constraint.commands:
            raise ConstraintCompilationFailure(f"Constraint {constraint.tag!r} has no commands.")
        for command in constraint.commands:
            if not isinstance(command, str) or not command.strip():
                raise ConstraintCompilationFailure(
                    f"Constraint {constraint.tag!r} contains an invalid command: {command!r}"
                )
            words.setdefault(command.strip().lower(), None)
    if not words:
        raise ConstraintCompilationFailure("No constraints to compile.")
    # [unk] lets the decoder reject out-of-grammar speech instead of forcing a match.
    return json.dumps([*words, UNKNOWN_WORD])


@lru_cache(maxsize=4)
def load_model(language: str, model_path: str | None = None):
    if vosk is None:
        raise ConstraintCompilationFailure("vosk is not available. Install dependencies first: pip install -e .")
    try:
        if model_path:
            return vosk.Model(model_path)
        return vosk.Model(lang=language)
    # vosk exits the interpreter when no downloadable model matches the language.
    except (Exception, SystemExit) as exc:
        target = model_path or language
        raise ConstraintCompilationFailure(f"Could not load a speech model for {target!r}: {exc}") from exc


def classify_confidence(words: list[dict[str, Any]], config: SpeechConfig) -> tuple[Confidence, float | None]:
    if not words:
        return Confidence.REJECTED, None
    if any(str(word.get("word", "")) == UNKNOWN_WORD for word in words):
        return Confidence.REJECTED, None
    scores = [float(word.get("conf", 0.0)) for word in words]
    score = sum(scores) / len(scores)
    if score >= config.high_confidence:
        return Confidence.HIGH, score
    if score >= config.medium_confidence:
        return Confidence.MEDIUM, score
    if score >= config.low_confidence:
        return Confidence.LOW, score
    return Confidence.REJECTED, score


def parse_result(payload: str, config: SpeechConfig) -> RecognitionResult | None:
    data = json.loads(payload)
    text = str(data.get("text", "")).strip()
    if not text:
        return None
    if text == UNKNOWN_WORD:
        return RecognitionResult(text=text, confidence=Confidence.REJECTED)
    confidence, score = classify_confidence(list(data.get("result") or []), config)
    return RecognitionResult(text=text, confidence=confidence, raw_confidence=score)


class ContinuousRecognitionSession:
    """Listens until stopped or until nothing is recognized for ``silence_timeout_seconds``.

    Handlers of ``result_generated`` receive ``(session, RecognitionResult)`` and
    handlers of ``completed`` receive ``(session, CompletionStatus)``. Both are
    called on the capture thread.
    """

    def __init__(self, recognizer: SpeechRecognizer) -> None:
        self._recognizer = recognizer
        self.completed = Event("completed")
        self.result_generated = Event("result_generated")
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def recognizer(self) -> SpeechRecognizer:
        return self._recognizer

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        recognizer = self._recognizer
        with self._lock:
            if recognizer.state == RecognizerState.CLOSED:
                raise RecognizerClosed("Recognizer has been closed.")
            if not recognizer.compiled:
                raise RuntimeError("Constraints must be compiled before starting a session.")
            if recognizer.state not in (RecognizerState.IDLE, RecognizerState.PAUSED):
                raise RuntimeError(f"Session cannot start while recognizer is {recognizer.state.value}.")
            self._stop_event.clear()
            recognizer._set_state(RecognizerState.CAPTURING)
            self._thread = threading.Thread(target=self._run, name="continuous-recognition", daemon=True)
            self._thread.start()

    def wait(self, timeout_seconds: float | None = None) -> bool:
        """Block until the current session has completed; returns False on timeout."""
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout=timeout_seconds)
        return not thread.is_alive()

    def stop(self, timeout_seconds: float = 0.0) -> None:
        """Ask the capture thread to finish.

        Returns right away unless ``timeout_seconds`` is positive; the completion
        still arrives through ``completed``.
        """
        with self._lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return
            self._recognizer._set_state(RecognizerState.STOPPING)
            self._stop_event.set()
        if timeout_seconds > 0 and thread is not threading.current_thread():
            thread.join(timeout=timeout_seconds)

    def _run(self) -> None:
        status = CompletionStatus.UNKNOWN
        final_state = RecognizerState.IDLE
        try:
            status = self._capture_loop()
        except Exception as exc:
            if classify_capture_error(exc) is not None:
                status = CompletionStatus.MICROPHONE_UNAVAILABLE
            else:
                status = CompletionStatus.AUDIO_QUALITY_FAILURE
            final_state = RecognizerState.PAUSED
            logger.error("Continuous recognition failed: %s", exc)
        if self._stop_event.is_set():
            final_state = RecognizerState.STOPPING
        if self._recognizer.state != RecognizerState.CLOSED:
            self._recognizer._set_state(final_state)
        self.completed.emit(self, status)
        if self._recognizer.state == RecognizerState.STOPPING:
            self._recognizer._set_state(RecognizerState.IDLE)

    def _capture_loop(self) -> CompletionStatus:
        recognizer = self._recognizer
        config = recognizer.config
        decoder = recognizer._decoder
        decoder.Reset()
        stream = AudioInputManager.open_speech_stream(
            AudioInputConfig(
                sample_rate=config.sample_rate,
                block_size=config.block_size,
                device=config.device,
            )
        )
        last_heard = time.monotonic()
        with stream:
            while not self._stop_event.is_set():
                block, overflowed = stream.read(config.block_size)
                if self._stop_event.is_set():
                    break
                if overflowed:
                    logger.debug("Audio input overflow")
                result = None
                if decoder.AcceptWaveform(mix_to_mono(block).tobytes()):
                    result = parse_result(decoder.Result(), config)
                if result is not None:
                    last_heard = time.monotonic()
                    recognizer._set_state(RecognizerState.PROCESSING)
                    self.result_generated.emit(self, result)
                    if recognizer.state == RecognizerState.PROCESSING:
                        recognizer._set_state(RecognizerState.CAPTURING)
                elif time.monotonic() - last_heard > config.silence_timeout_seconds:
                    return CompletionStatus.TIMEOUT_EXCEEDED
        return CompletionStatus.USER_CANCELED


class SpeechRecognizer:
    """Offline recognizer restricted to the words of its list constraints."""

    session_class = ContinuousRecognitionSession

    def __init__(self, language: str | None = None, config: SpeechConfig | None = None) -> None:
        self.language = language or system_speech_language()
        self.config = config or SpeechConfig()
        self.constraints: list[ListConstraint] = []
        self._decoder = None
        self._compiled = False
        self._state = RecognizerState.IDLE
        self._state_lock = threading.Lock()
        self.session = self.session_class(self)

    @property
    def state(self) -> RecognizerState:
        with self._state_lock:
            return self._state

    @property
    def compiled(self) -> bool:
        return self._compiled

    def compile_constraints(self) -> None:
        if self.state == RecognizerState.CLOSED:
            raise RecognizerClosed("Recognizer has been closed.")
        grammar = build_grammar(self.constraints)
        model_path = str(self.config.model_path) if self.config.model_path else None
        model = load_model(self.language, model_path)
        try:
            decoder = vosk.KaldiRecognizer(model, float(self.config.sample_rate), grammar)
            decoder.SetWords(True)
        except Exception as exc:
            raise ConstraintCompilationFailure(f"Grammar was rejected by the recognizer: {exc}") from exc
        self._decoder = decoder
        self._compiled = True
        logger.info(
            "Compiled %d constraint(s) for language %s",
            len(self.constraints),
            self.language,
        )

    def close(self, timeout_seconds: float = 0.0) -> None:
        if self.state == RecognizerState.CLOSED:
            return
        self.session.stop(timeout_seconds)
        self._set_state(RecognizerState.CLOSED)
        self.session.completed.clear()
        self.session.result_generated.clear()
        self._decoder = None
        self._compiled = False

    def _set_state(self, state: RecognizerState) -> None:
        with self._state_lock:
            self._state = state

    def __enter__(self) -> SpeechRecognizer:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

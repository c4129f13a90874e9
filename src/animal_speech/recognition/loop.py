from __future__ import annotations

import logging
import queue
import threading
from functools import partial
from typing import Callable

from animal_speech.core.models import (
    CompletionStatus,
    ListConstraint,
    LoopState,
    LoopUpdate,
    RecognitionResult,
    RecognizerState,
    UpdateKind,
)
from animal_speech.core.vocabulary import CONSTRAINT_TAG, VOCABULARY, Vocabulary
from animal_speech.display.presenter import AnimalPresenter
from animal_speech.errors import RecognizerClosed

from .speech_service import ContinuousRecognitionSession, SpeechConfig, SpeechRecognizer

logger = logging.getLogger(__name__)

RecognizerFactory = Callable[[str | None, SpeechConfig], SpeechRecognizer]


class RecognizerUnit:
    """A recognizer together with the two session subscriptions made on it.

    Closing the unit detaches both handlers before releasing the recognizer, so
    a unit can never deliver events once it has been replaced.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        generation: int,
        on_result: Callable[[ContinuousRecognitionSession, RecognitionResult], None],
        on_completed: Callable[[ContinuousRecognitionSession, CompletionStatus], None],
    ) -> None:
        self.recognizer = recognizer
        self.generation = generation
        self._on_result = on_result
        self._on_completed = on_completed
        self._attached = False
        self._closed = False

    @property
    def session(self) -> ContinuousRecognitionSession:
        return self.recognizer.session

    def attach(self) -> None:
        if self._attached or self._closed:
            return
        self.session.completed.subscribe(self._on_completed)
        self.session.result_generated.subscribe(self._on_result)
        self._attached = True

    def close(self, timeout_seconds: float = 0.0) -> None:
        if self._closed:
            return
        self._closed = True
        if self._attached:
            self.session.completed.unsubscribe(self._on_completed)
            self.session.result_generated.unsubscribe(self._on_result)
            self._attached = False
        self.recognizer.close(timeout_seconds)

    def __enter__(self) -> RecognizerUnit:
        self.attach()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RecognitionLoop:
    """Keeps one recognizer listening for vocabulary words and shows what it hears.

    Session events only enqueue ``LoopUpdate`` messages; ``drain`` (called from
    the UI thread) filters, displays and restarts.
    """

    def __init__(
        self,
        presenter: AnimalPresenter,
        config: SpeechConfig | None = None,
        vocabulary: Vocabulary = VOCABULARY,
        recognizer_factory: RecognizerFactory = SpeechRecognizer,
    ) -> None:
        self.presenter = presenter
        self.config = config or SpeechConfig()
        self.vocabulary = vocabulary
        self._recognizer_factory = recognizer_factory
        self._updates: queue.Queue[LoopUpdate] = queue.Queue()
        self._unit: RecognizerUnit | None = None
        self._generation = 0
        self._state = LoopState.UNINITIALIZED
        self._last_completion: CompletionStatus | None = None

    @property
    def updates(self) -> queue.Queue[LoopUpdate]:
        return self._updates

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def recognizer(self) -> SpeechRecognizer | None:
        return self._unit.recognizer if self._unit is not None else None

    @property
    def last_completion(self) -> CompletionStatus | None:
        return self._last_completion

    def initialize(self, language: str | None = None) -> None:
        """Build a recognizer for the vocabulary and replace the current one with it.

        Compilation errors propagate and leave the current recognizer in place.
        """
        if self._state == LoopState.DISPOSED:
            raise RecognizerClosed("Recognition loop has been disposed.")
        generation = self._generation + 1
        recognizer = self._recognizer_factory(language, self.config)
        try:
            recognizer.constraints.append(ListConstraint(self.vocabulary.names, CONSTRAINT_TAG))
            recognizer.compile_constraints()
        except Exception:
            recognizer.close()
            raise
        unit = RecognizerUnit(
            recognizer=recognizer,
            generation=generation,
            on_result=partial(self._handle_result, generation),
            on_completed=partial(self._handle_completed, generation),
        )
        unit.attach()
        previous = self._unit
        self._unit = unit
        self._generation = generation
        if previous is not None:
            previous.close()
        self._state = LoopState.READY
        logger.info("Recognizer ready (generation=%d, language=%s)", generation, recognizer.language)

    def start(self) -> None:
        unit = self._require_unit()
        unit.session.start()
        self._state = LoopState.LISTENING
        logger.info("Continuous recognition started")

    def stop(self) -> None:
        unit = self._require_unit()
        unit.session.stop()
        self._state = LoopState.READY
        logger.info("Continuous recognition stopped")

    def dispose(self, timeout_seconds: float = 0.0) -> None:
        """Release the recognizer; ``timeout_seconds`` waits for the capture thread."""
        if self._state == LoopState.DISPOSED:
            return
        if self._unit is not None:
            self._unit.close(timeout_seconds)
            self._unit = None
        self._state = LoopState.DISPOSED
        while True:
            try:
                self._updates.get_nowait()
            except queue.Empty:
                break
        logger.info("Recognition loop disposed")

    def drain(self, max_items: int | None = None) -> int:
        processed = 0
        while max_items is None or processed < max_items:
            try:
                update = self._updates.get_nowait()
            except queue.Empty:
                break
            self._apply(update)
            processed += 1
        return processed

    def run_forever(self, stop_event: threading.Event, poll_seconds: float = 0.1) -> None:
        while not stop_event.is_set() and self._state != LoopState.DISPOSED:
            try:
                update = self._updates.get(timeout=poll_seconds)
            except queue.Empty:
                continue
            self._apply(update)

    def _require_unit(self) -> RecognizerUnit:
        if self._state == LoopState.DISPOSED:
            raise RecognizerClosed("Recognition loop has been disposed.")
        if self._unit is None:
            raise RuntimeError("Recognizer is not initialized.")
        return self._unit

    def _handle_result(
        self,
        generation: int,
        session: ContinuousRecognitionSession,
        result: RecognitionResult,
    ) -> None:
        if not result.confidence.accepted:
            logger.debug("Discarded %r (confidence=%s)", result.text, result.confidence.value)
            return
        self._updates.put(LoopUpdate(kind=UpdateKind.RESULT, generation=generation, result=result))

    def _handle_completed(
        self,
        generation: int,
        session: ContinuousRecognitionSession,
        status: CompletionStatus,
    ) -> None:
        self._updates.put(
            LoopUpdate(
                kind=UpdateKind.COMPLETED,
                generation=generation,
                status=status,
                recognizer_state=session.recognizer.state,
            )
        )

    def _apply(self, update: LoopUpdate) -> None:
        if self._state == LoopState.DISPOSED or self._unit is None or update.generation != self._generation:
            logger.debug("Dropped %s update from generation %d", update.kind.value, update.generation)
            return
        if update.kind == UpdateKind.RESULT and update.result is not None:
            self.presenter.show_animal(update.result.text)
            return
        if update.kind == UpdateKind.COMPLETED:
            self._on_session_completed(update)

    def _on_session_completed(self, update: LoopUpdate) -> None:
        self._last_completion = update.status
        if self._state != LoopState.LISTENING:
            # Stopped after the session had already ended.
            logger.info("Session completed (%s) while stopped; not restarting", _status_value(update.status))
            return
        self._state = LoopState.IDLE
        recognizer = self._unit.recognizer
        if update.recognizer_state == RecognizerState.IDLE and recognizer.state == RecognizerState.IDLE:
            logger.info("Session completed (%s); restarting", _status_value(update.status))
            recognizer.session.start()
            self._state = LoopState.LISTENING
            return
        logger.info(
            "Session completed (%s) with recognizer %s; not restarting",
            _status_value(update.status),
            recognizer.state.value,
        )
        if recognizer.state in (RecognizerState.CAPTURING, RecognizerState.PROCESSING):
            self._state = LoopState.LISTENING
        elif recognizer.state != RecognizerState.PAUSED:
            self._state = LoopState.READY


def _status_value(status: CompletionStatus | None) -> str:
    return status.value if status is not None else "-"

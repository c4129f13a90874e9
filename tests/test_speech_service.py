from __future__ import annotations

import json
import threading
import time
import unittest
from unittest.mock import patch

import numpy as np

from animal_speech.core.models import (
    CompletionStatus,
    Confidence,
    ListConstraint,
    RecognitionResult,
    RecognizerState,
)
from animal_speech.errors import ConstraintCompilationFailure, NoDevice, RecognizerClosed
from animal_speech.recognition import speech_service
from animal_speech.recognition.speech_service import (
    Event,
    SpeechConfig,
    SpeechRecognizer,
    build_grammar,
    classify_confidence,
    parse_result,
    system_speech_language,
)

FOX_RESULT = json.dumps({"text": "fox", "result": [{"word": "fox", "conf": 0.95, "start": 0.1, "end": 0.4}]})


class _FakeDecoder:
    def __init__(self, model, sample_rate, grammar):
        self.model = model
        self.sample_rate = sample_rate
        self.grammar = json.loads(grammar)
        self.words = False
        self.results = [FOX_RESULT]

    def SetWords(self, enabled):
        self.words = enabled

    def Reset(self):
        pass

    def AcceptWaveform(self, data):
        return bool(self.results)

    def Result(self):
        return self.results.pop(0)


class _DummyVosk:
    def __init__(self, model_error: BaseException | None = None) -> None:
        self.model_error = model_error
        self.model_calls: list[tuple] = []
        self.decoders: list[_FakeDecoder] = []

    def Model(self, model_path=None, lang=None):
        self.model_calls.append((model_path, lang))
        if self.model_error is not None:
            raise self.model_error
        return object()

    def KaldiRecognizer(self, model, sample_rate, grammar):
        decoder = _FakeDecoder(model, sample_rate, grammar)
        self.decoders.append(decoder)
        return decoder


class _Stream:
    def __init__(self, fail_after: int | None = None) -> None:
        self.reads = 0
        self.fail_after = fail_after

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self, size):
        self.reads += 1
        if self.fail_after is not None and self.reads > self.fail_after:
            raise OSError("stream broke")
        time.sleep(0.002)
        return np.zeros((size, 1), dtype=np.int16), False


class GrammarTests(unittest.TestCase):
    def test_grammar_is_deduplicated_and_allows_unknown(self) -> None:
        grammar = json.loads(build_grammar([ListConstraint(["snake", "fox", "snake"], "Animals")]))
        self.assertEqual(["snake", "fox", "[unk]"], grammar)

    def test_empty_constraint_fails(self) -> None:
        with self.assertRaises(ConstraintCompilationFailure):
            build_grammar([ListConstraint([], "Animals")])
        with self.assertRaises(ConstraintCompilationFailure):
            build_grammar([])

    def test_blank_command_fails(self) -> None:
        with self.assertRaises(ConstraintCompilationFailure):
            build_grammar([ListConstraint(["fox", "  "], "Animals")])


class ConfidenceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = SpeechConfig()

    def test_levels(self) -> None:
        self.assertEqual(Confidence.HIGH, classify_confidence([{"word": "fox", "conf": 0.97}], self.config)[0])
        self.assertEqual(Confidence.MEDIUM, classify_confidence([{"word": "fox", "conf": 0.75}], self.config)[0])
        self.assertEqual(Confidence.LOW, classify_confidence([{"word": "fox", "conf": 0.5}], self.config)[0])
        self.assertEqual(Confidence.REJECTED, classify_confidence([{"word": "fox", "conf": 0.1}], self.config)[0])

    def test_multi_word_uses_mean(self) -> None:
        words = [{"word": "guinea", "conf": 1.0}, {"word": "pig", "conf": 0.6}]
        confidence, score = classify_confidence(words, self.config)
        self.assertEqual(Confidence.MEDIUM, confidence)
        self.assertAlmostEqual(0.8, score)

    def test_unknown_word_is_rejected(self) -> None:
        self.assertEqual(Confidence.REJECTED, parse_result('{"text": "[unk]"}', self.config).confidence)
        words = [{"word": "fox", "conf": 1.0}, {"word": "[unk]", "conf": 1.0}]
        self.assertEqual(Confidence.REJECTED, classify_confidence(words, self.config)[0])

    def test_empty_text_is_not_a_result(self) -> None:
        self.assertIsNone(parse_result('{"text": ""}', self.config))

    def test_parse_result(self) -> None:
        result = parse_result(FOX_RESULT, self.config)
        self.assertEqual("fox", result.text)
        self.assertEqual(Confidence.HIGH, result.confidence)


class LanguageTests(unittest.TestCase):
    def test_locale_is_converted(self) -> None:
        with patch("animal_speech.recognition.speech_service.locale.getlocale", return_value=("en_GB", "UTF-8")):
            self.assertEqual("en-gb", system_speech_language())

    def test_missing_locale_falls_back(self) -> None:
        with patch("animal_speech.recognition.speech_service.locale.getlocale", return_value=(None, None)):
            self.assertEqual("en-us", system_speech_language())


class EventTests(unittest.TestCase):
    def test_subscribe_and_unsubscribe(self) -> None:
        event = Event("completed")
        seen = []
        handler = seen.append
        event.subscribe(handler)
        event.emit(1)
        self.assertTrue(event.unsubscribe(handler))
        self.assertFalse(event.unsubscribe(handler))
        event.emit(2)
        self.assertEqual([1], seen)
        self.assertEqual(0, event.handler_count)


class _HeldStream(_Stream):
    """Stream whose reads block until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.reading = threading.Event()
        self.release = threading.Event()

    def read(self, size):
        self.reading.set()
        self.release.wait(2.0)
        return np.zeros((size, 1), dtype=np.int16), False


class SpeechRecognizerTests(unittest.TestCase):
    def setUp(self) -> None:
        speech_service.load_model.cache_clear()
        self.addCleanup(speech_service.load_model.cache_clear)
        self.vosk = _DummyVosk()
        patcher = patch("animal_speech.recognition.speech_service.vosk", new=self.vosk)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.config = SpeechConfig(silence_timeout_seconds=0.05, block_size=160)

    def _compiled_recognizer(self) -> SpeechRecognizer:
        recognizer = SpeechRecognizer("en-us", self.config)
        self.addCleanup(recognizer.close)
        recognizer.constraints.append(ListConstraint(["fox", "owl"], "Animals"))
        recognizer.compile_constraints()
        return recognizer

    def test_compile_builds_grammar_recognizer(self) -> None:
        recognizer = self._compiled_recognizer()
        self.assertTrue(recognizer.compiled)
        decoder = self.vosk.decoders[0]
        self.assertEqual(["fox", "owl", "[unk]"], decoder.grammar)
        self.assertTrue(decoder.words)
        self.assertEqual([(None, "en-us")], self.vosk.model_calls)

    def test_model_failure_is_compilation_failure(self) -> None:
        self.vosk.model_error = SystemExit(1)
        recognizer = SpeechRecognizer("xx-yy", self.config)
        recognizer.constraints.append(ListConstraint(["fox"], "Animals"))
        with self.assertRaises(ConstraintCompilationFailure):
            recognizer.compile_constraints()
        self.assertFalse(recognizer.compiled)

    def test_start_requires_compiled_constraints(self) -> None:
        recognizer = SpeechRecognizer("en-us", self.config)
        with self.assertRaises(RuntimeError):
            recognizer.session.start()

    def test_closed_recognizer_cannot_start(self) -> None:
        recognizer = self._compiled_recognizer()
        recognizer.close()
        self.assertEqual(RecognizerState.CLOSED, recognizer.state)
        with self.assertRaises(RecognizerClosed):
            recognizer.session.start()

    def test_session_emits_result_then_times_out_idle(self) -> None:
        recognizer = self._compiled_recognizer()
        results: list[RecognitionResult] = []
        completions: list[tuple[CompletionStatus, RecognizerState]] = []
        recognizer.session.result_generated.subscribe(lambda session, result: results.append(result))
        recognizer.session.completed.subscribe(
            lambda session, status: completions.append((status, session.recognizer.state))
        )
        with patch(
            "animal_speech.recognition.speech_service.AudioInputManager.open_speech_stream",
            return_value=_Stream(),
        ):
            recognizer.session.start()
            self.assertTrue(recognizer.session.wait(2.0))
        self.assertEqual(["fox"], [result.text for result in results])
        self.assertEqual([(CompletionStatus.TIMEOUT_EXCEEDED, RecognizerState.IDLE)], completions)

    def test_stop_completes_with_stopping_state(self) -> None:
        self.config.silence_timeout_seconds = 30.0
        recognizer = self._compiled_recognizer()
        completions: list[tuple[CompletionStatus, RecognizerState]] = []
        done = threading.Event()

        def on_completed(session, status):
            completions.append((status, session.recognizer.state))
            done.set()

        recognizer.session.completed.subscribe(on_completed)
        with patch(
            "animal_speech.recognition.speech_service.AudioInputManager.open_speech_stream",
            return_value=_Stream(),
        ):
            recognizer.session.start()
            recognizer.session.stop()
            self.assertTrue(done.wait(2.0))
            recognizer.session.wait(2.0)
        self.assertEqual([(CompletionStatus.USER_CANCELED, RecognizerState.STOPPING)], completions)
        self.assertEqual(RecognizerState.IDLE, recognizer.state)

    def test_close_does_not_wait_for_capture_thread(self) -> None:
        self.config.silence_timeout_seconds = 30.0
        recognizer = self._compiled_recognizer()
        results: list[RecognitionResult] = []
        recognizer.session.result_generated.subscribe(lambda session, result: results.append(result))
        stream = _HeldStream()
        self.addCleanup(stream.release.set)
        with patch(
            "animal_speech.recognition.speech_service.AudioInputManager.open_speech_stream",
            return_value=stream,
        ):
            recognizer.session.start()
            self.assertTrue(stream.reading.wait(2.0))
            started = time.monotonic()
            recognizer.close()
            self.assertLess(time.monotonic() - started, 0.5)
            self.assertTrue(recognizer.session.running)
            stream.release.set()
            self.assertTrue(recognizer.session.wait(2.0))
        self.assertEqual(RecognizerState.CLOSED, recognizer.state)
        self.assertEqual([], results)

    def test_missing_microphone_pauses(self) -> None:
        recognizer = self._compiled_recognizer()
        completions: list[tuple[CompletionStatus, RecognizerState]] = []
        recognizer.session.completed.subscribe(
            lambda session, status: completions.append((status, session.recognizer.state))
        )
        with patch(
            "animal_speech.recognition.speech_service.AudioInputManager.open_speech_stream",
            side_effect=NoDevice("gone"),
        ):
            recognizer.session.start()
            self.assertTrue(recognizer.session.wait(2.0))
        self.assertEqual([(CompletionStatus.MICROPHONE_UNAVAILABLE, RecognizerState.PAUSED)], completions)

    def test_broken_stream_is_audio_failure(self) -> None:
        recognizer = self._compiled_recognizer()
        completions: list[CompletionStatus] = []
        recognizer.session.completed.subscribe(lambda session, status: completions.append(status))
        with patch(
            "animal_speech.recognition.speech_service.AudioInputManager.open_speech_stream",
            return_value=_Stream(fail_after=2),
        ):
            recognizer.session.start()
            self.assertTrue(recognizer.session.wait(2.0))
        self.assertEqual([CompletionStatus.AUDIO_QUALITY_FAILURE], completions)
        self.assertEqual(RecognizerState.PAUSED, recognizer.state)


if __name__ == "__main__":
    unittest.main()

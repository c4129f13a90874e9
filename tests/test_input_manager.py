from __future__ import annotations

import unittest
from unittest.mock import patch

import numpy as np

from animal_speech.audio.input_manager import AudioInputConfig, AudioInputManager, mix_to_mono
from animal_speech.errors import CaptureUnavailable, NoDevice


class _Default:
    device = [1, 3]


class _DummySD:
    default = _Default()

    @staticmethod
    def query_devices():
        return [
            {"name": "BlackHole 2ch", "max_input_channels": 2},
            {"name": "USB Mic", "max_input_channels": 1},
            {"name": "MacBook Pro Microphone", "max_input_channels": 1},
            {"name": "Built-in Output", "max_input_channels": 0},
        ]


class _Stream:
    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self, size):
        # First channel silent, second active: the mix-down must still see signal.
        data = np.column_stack(
            [
                np.zeros((size,), dtype=np.int16),
                np.full((size,), 600, dtype=np.int16),
            ]
        )
        return data, False


class _StreamSD(_DummySD):
    created: list[_Stream] = []

    @classmethod
    def InputStream(cls, **kwargs):
        stream = _Stream(**kwargs)
        cls.created.append(stream)
        return stream


class InputManagerTests(unittest.TestCase):
    def test_loopback_inputs_are_not_microphones(self) -> None:
        with patch("animal_speech.audio.input_manager.sd", new=_DummySD()):
            devices = AudioInputManager.list_capture_devices()
        names = [device.name for device in devices]
        self.assertNotIn("BlackHole 2ch", names)
        self.assertEqual("MacBook Pro Microphone", names[0])

    def test_default_device_prefers_system_default(self) -> None:
        with patch("animal_speech.audio.input_manager.sd", new=_DummySD()):
            device = AudioInputManager.default_device()
        self.assertEqual(1, device.index)

    def test_default_device_without_inputs_raises_no_device(self) -> None:
        class _Empty(_DummySD):
            @staticmethod
            def query_devices():
                return [{"name": "Speakers", "max_input_channels": 0}]

        with patch("animal_speech.audio.input_manager.sd", new=_Empty()):
            with self.assertRaises(NoDevice):
                AudioInputManager.default_device()

    def test_get_device_rejects_outputs(self) -> None:
        with patch("animal_speech.audio.input_manager.sd", new=_DummySD()):
            with self.assertRaises(NoDevice):
                AudioInputManager.get_device(3)
            with self.assertRaises(NoDevice):
                AudioInputManager.get_device(99)

    def test_missing_backend_raises_capture_unavailable(self) -> None:
        with patch("animal_speech.audio.input_manager.sd", new=None):
            with self.assertRaises(CaptureUnavailable):
                AudioInputManager.list_capture_devices()

    def test_speech_stream_is_mono_int16(self) -> None:
        sd = _StreamSD()
        with patch("animal_speech.audio.input_manager.sd", new=sd):
            stream = AudioInputManager.open_speech_stream(AudioInputConfig(device=2))
        self.assertEqual(16000, stream.kwargs["samplerate"])
        self.assertEqual(1, stream.kwargs["channels"])
        self.assertEqual("int16", stream.kwargs["dtype"])
        self.assertEqual(2, stream.kwargs["device"])

    def test_probe_device_uses_stream_data(self) -> None:
        with patch("animal_speech.audio.input_manager.sd", new=_StreamSD()):
            metrics = AudioInputManager.probe_device(device_index=1, duration_seconds=0.1)
        self.assertGreater(float(metrics["rms"]), 0.0)
        self.assertGreater(float(metrics["peak"]), 0.0)

    def test_mix_to_mono_keeps_dtype(self) -> None:
        stereo = np.column_stack([np.zeros((4,), dtype=np.int16), np.full((4,), 100, dtype=np.int16)])
        mono = mix_to_mono(stereo)
        self.assertEqual((4,), mono.shape)
        self.assertEqual(np.int16, mono.dtype)
        self.assertTrue(np.all(mono == 50))


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from animal_speech.errors import CaptureUnavailable, NoDevice

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - handled at runtime on missing backend
    sd = None


SPEECH_SAMPLE_RATE = 16000
SPEECH_CHANNELS = 1
SPEECH_DTYPE = "int16"

# Loopback inputs record system output, not the user's voice.
LOOPBACK_DEVICE_KEYWORDS = (
    "blackhole",
    "loopback",
    "stereo mix",
    "what u hear",
    "monitor",
    "vb-audio",
)
HEADSET_DEVICE_KEYWORDS = ("airpods", "bluetooth", "hands-free")


@dataclass(slots=True)
class AudioInputConfig:
    sample_rate: int = SPEECH_SAMPLE_RATE
    channels: int = SPEECH_CHANNELS
    block_size: int = 4000
    device: int | None = None


@dataclass(slots=True)
class CaptureDevice:
    index: int
    name: str
    max_input_channels: int
    default_sample_rate: int


class AudioInputManager:
    """Helpers for discovering microphones and opening speech capture streams."""

    @staticmethod
    def ensure_backend() -> None:
        if sd is None:
            raise CaptureUnavailable(
                "sounddevice/PortAudio is not available. Install dependencies first: pip install -e ."
            )

    @staticmethod
    def list_capture_devices() -> list[CaptureDevice]:
        AudioInputManager.ensure_backend()
        devices = sd.query_devices()
        capture_devices = [
            _capture_device(index, info) for index, info in enumerate(devices) if _input_channels(info) > 0
        ]
        return AudioInputManager._filter_microphone_devices(capture_devices)

    @staticmethod
    def default_device() -> CaptureDevice:
        devices = AudioInputManager.list_capture_devices()
        if not devices:
            raise NoDevice("No audio capture devices are present on this system.")
        default_index = AudioInputManager._default_input_index()
        for device in devices:
            if device.index == default_index:
                return device
        return devices[0]

    @staticmethod
    def get_device(index: int) -> CaptureDevice:
        AudioInputManager.ensure_backend()
        devices = sd.query_devices()
        if index < 0 or index >= len(devices):
            raise NoDevice(f"Invalid device index: {index}")
        info = devices[index]
        if _input_channels(info) <= 0:
            raise NoDevice(f"Device index {index} has no input channels.")
        return _capture_device(index, info)

    @staticmethod
    def resolve_device(index: int | None) -> CaptureDevice:
        if index is None:
            return AudioInputManager.default_device()
        return AudioInputManager.get_device(index)

    @staticmethod
    def open_speech_stream(config: AudioInputConfig):
        """Return an unstarted ``sounddevice.InputStream`` configured for speech."""
        AudioInputManager.ensure_backend()
        device = AudioInputManager.resolve_device(config.device)
        channels = max(1, min(config.channels, device.max_input_channels))
        return sd.InputStream(
            samplerate=config.sample_rate,
            channels=channels,
            blocksize=config.block_size,
            device=device.index,
            dtype=SPEECH_DTYPE,
            latency="low",
        )

    @staticmethod
    def probe_device(
        device_index: int | None = None,
        sample_rate: int = SPEECH_SAMPLE_RATE,
        duration_seconds: float = 1.0,
        block_size: int = 1024,
    ) -> dict[str, float]:
        """Record briefly and report the input level as full-scale fractions."""
        frames = int(sample_rate * duration_seconds)
        if frames <= 0:
            raise ValueError("duration_seconds must be positive.")
        stream = AudioInputManager.open_speech_stream(
            AudioInputConfig(sample_rate=sample_rate, block_size=block_size, device=device_index)
        )
        blocks: list[np.ndarray] = []
        with stream:
            while frames > 0:
                data, _overflowed = stream.read(min(block_size, frames))
                blocks.append(mix_to_mono(data))
                frames -= len(data)
        if not blocks:
            return {"rms": 0.0, "peak": 0.0}
        level = np.concatenate(blocks).astype(np.float64) / 32768.0
        return {
            "rms": float(np.sqrt(np.mean(level * level))),
            "peak": float(np.max(np.abs(level))),
        }

    @staticmethod
    def _default_input_index() -> int | None:
        try:
            index = int(sd.default.device[0])
        except (TypeError, ValueError, IndexError):
            return None
        return index if index >= 0 else None

    @staticmethod
    def _filter_microphone_devices(devices: list[CaptureDevice]) -> list[CaptureDevice]:
        microphones = [
            device for device in devices if not any(keyword in device.name.lower() for keyword in LOOPBACK_DEVICE_KEYWORDS)
        ]
        candidates = microphones or devices
        return sorted(candidates, key=AudioInputManager._microphone_priority)

    @staticmethod
    def _microphone_priority(device: CaptureDevice) -> tuple[int, str]:
        name = device.name.lower()
        # Bluetooth headset profiles have very low gain for speech capture.
        if any(token in name for token in HEADSET_DEVICE_KEYWORDS):
            return (3, name)
        if "macbook" in name or "built-in" in name:
            return (0, name)
        if "usb" in name:
            return (1, name)
        return (2, name)


def _input_channels(info) -> int:
    return int(info["max_input_channels"])


def _capture_device(index: int, info) -> CaptureDevice:
    return CaptureDevice(
        index=index,
        name=str(info["name"]),
        max_input_channels=_input_channels(info),
        default_sample_rate=int(float(info.get("default_samplerate", SPEECH_SAMPLE_RATE))),
    )


def mix_to_mono(audio_block: np.ndarray) -> np.ndarray:
    if audio_block.ndim <= 1:
        return audio_block
    return np.mean(audio_block, axis=1).astype(audio_block.dtype, copy=False)

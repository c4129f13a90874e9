from .input_manager import AudioInputConfig, AudioInputManager, CaptureDevice, mix_to_mono
from .permissions import classify_capture_error, probe_speech_capture, request_microphone_permission

__all__ = [
    "AudioInputConfig",
    "AudioInputManager",
    "CaptureDevice",
    "classify_capture_error",
    "mix_to_mono",
    "probe_speech_capture",
    "request_microphone_permission",
]

"""Microphone permission probe.

Access is tested by opening a capture stream with the settings speech
recognition uses and classifying the failure. The probe may be repeated, e.g.
whenever the window regains focus.
"""

from __future__ import annotations

import errno
import logging
from typing import Callable

from animal_speech.errors import (
    AnimalSpeechError,
    CaptureUnavailable,
    NoDevice,
    PermissionDenied,
    UnclassifiedCaptureError,
)

from .input_manager import AudioInputConfig, AudioInputManager

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - handled at runtime on missing backend
    sd = None

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

# paInvalidDevice, paDeviceUnavailable
NO_DEVICE_ERROR_CODES = frozenset({-9996, -9985})
# Host error codes are errno values only on these host APIs (paOSS, paALSA).
ERRNO_HOST_APIS = frozenset({7, 8})
ACCESS_DENIED_HOST_ERRORS = frozenset({errno.EACCES, -errno.EACCES})
ACCESS_DENIED_MARKERS = ("permission", "access denied", "not authorized", "unauthorized")
NO_DEVICE_MARKERS = ("no input device", "no default input device", "error querying device", "invalid device")

NOTICES: dict[type[AnimalSpeechError], str] = {
    CaptureUnavailable: "Media player components are unavailable.",
    NoDevice: "No Audio Capture devices are present on this system.",
}


def probe_speech_capture(device: int | None = None) -> None:
    """Open and close a speech-mode capture stream, raising on any failure."""
    stream = AudioInputManager.open_speech_stream(AudioInputConfig(device=device))
    with stream:
        pass


def classify_capture_error(exc: BaseException) -> type[AnimalSpeechError] | None:
    """Map a capture failure onto the known categories, or ``None`` if it is not one."""
    if isinstance(exc, (CaptureUnavailable, PermissionDenied, NoDevice)):
        return type(exc)
    if isinstance(exc, PermissionError):
        return PermissionDenied
    if not _is_port_audio_error(exc):
        return None
    code, host_api, host_code, message = _port_audio_details(exc)
    errno_denied = host_api in ERRNO_HOST_APIS and host_code in ACCESS_DENIED_HOST_ERRORS
    if errno_denied or any(marker in message for marker in ACCESS_DENIED_MARKERS):
        return PermissionDenied
    if code in NO_DEVICE_ERROR_CODES or any(marker in message for marker in NO_DEVICE_MARKERS):
        return NoDevice
    return None


def request_microphone_permission(notify: Notifier | None = None, device: int | None = None) -> bool:
    """Return True when the microphone can be captured from without permission problems.

    Known failure categories are reported as ``False``; capture-unavailable and
    no-device cases also pass a one-line notice to ``notify``. Access denied is
    silent so the caller can simply disable listening. Anything else raises.
    """
    notify = notify or _log_notice
    try:
        probe_speech_capture(device)
    except Exception as exc:
        category = classify_capture_error(exc)
        if category is None:
            if _is_port_audio_error(exc):
                raise UnclassifiedCaptureError(str(exc)) from exc
            raise
        if category is PermissionDenied:
            logger.info("Microphone access denied: %s", exc)
            return False
        logger.warning("Microphone unavailable (%s): %s", category.__name__, exc)
        notify(NOTICES[category])
        return False
    logger.debug("Microphone capture probe succeeded (device=%s)", device)
    return True


def _log_notice(message: str) -> None:
    logger.warning(message)


def _is_port_audio_error(exc: BaseException) -> bool:
    return sd is not None and isinstance(exc, sd.PortAudioError)


def _port_audio_details(exc: BaseException) -> tuple[int | None, int | None, int | None, str]:
    # PortAudioError args: (message, error_code, (host_api_type, host_error_code, host_error_text))
    args = exc.args
    message = str(args[0]) if args else ""
    code: int | None = None
    host_api: int | None = None
    host_code: int | None = None
    if len(args) > 1 and isinstance(args[1], int):
        code = args[1]
    if len(args) > 2 and isinstance(args[2], tuple) and len(args[2]) >= 3:
        if isinstance(args[2][0], int):
            host_api = args[2][0]
        if isinstance(args[2][1], int):
            host_code = args[2][1]
        message = f"{message} {args[2][2]}"
    return code, host_api, host_code, message.lower()

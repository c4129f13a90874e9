from __future__ import annotations

import argparse
import logging
import threading

from animal_speech.audio import AudioInputManager, request_microphone_permission
from animal_speech.display import AnimalPresenter, ImageCatalog
from animal_speech.errors import AnimalSpeechError
from animal_speech.recognition import RecognitionLoop
from animal_speech.settings import add_common_arguments, configure_logging, speech_config_from_args
from animal_speech.ui import ConsoleSurface

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Listen for animal names and print what was heard.")
    add_common_arguments(parser)
    parser.add_argument("--list-devices", action="store_true")
    parser.add_argument(
        "--check-level",
        action="store_true",
        help="Record one second from the capture device and print its input level.",
    )
    return parser


def list_devices() -> list[tuple[int, str]]:
    devices = AudioInputManager.list_capture_devices()
    return [(device.index, device.name) for device in devices]


def main() -> int:
    args = build_parser().parse_args()
    configure_logging(args.log_level)

    if args.list_devices:
        try:
            devices = list_devices()
        except AnimalSpeechError as exc:
            logger.error("%s", exc)
            return 1
        if not devices:
            print("No input devices found.")
        for index, name in devices:
            print(f"{index}\t{name}")
        return 0

    if args.check_level:
        try:
            level = AudioInputManager.probe_device(device_index=args.device, sample_rate=args.sample_rate)
        except AnimalSpeechError as exc:
            logger.error("%s", exc)
            return 1
        print(f"rms={level['rms']:.4f} peak={level['peak']:.4f}")
        return 0

    if not request_microphone_permission(notify=print, device=args.device):
        print("Microphone is not available; nothing to listen to.")
        return 1

    catalog = ImageCatalog(args.image_dir)
    catalog.warn_missing()
    presenter = AnimalPresenter(ConsoleSurface(), catalog=catalog)
    loop = RecognitionLoop(presenter, config=speech_config_from_args(args))
    stop_event = threading.Event()
    try:
        loop.initialize(args.language)
        loop.start()
        print("Say an animal name. Press Ctrl+C to stop.")
        loop.run_forever(stop_event)
    except KeyboardInterrupt:
        pass
    except AnimalSpeechError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        stop_event.set()
        loop.dispose(timeout_seconds=2.0)
        print("\nStopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

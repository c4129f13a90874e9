from __future__ import annotations

import argparse
import logging
from pathlib import Path

from animal_speech.display.catalog import DEFAULT_IMAGE_DIR
from animal_speech.recognition.speech_service import SpeechConfig

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


def add_common_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--model-path",
        default=None,
        help="Path to an unpacked Vosk model. Defaults to the model for --language.",
    )
    parser.add_argument(
        "--language",
        default=None,
        help="Recognizer language such as en-us. Defaults to the system locale.",
    )
    parser.add_argument("--device", type=int, default=None, help="Capture device index.")
    parser.add_argument("--sample-rate", type=int, default=16000, help="Capture sample rate.")
    parser.add_argument(
        "--silence-timeout",
        type=float,
        default=20.0,
        help="Seconds without a recognized word before the session completes and restarts.",
    )
    parser.add_argument(
        "--image-dir",
        default=str(DEFAULT_IMAGE_DIR),
        help="Directory holding <animal>.jpg pictures.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def speech_config_from_args(args: argparse.Namespace) -> SpeechConfig:
    if args.sample_rate <= 0:
        raise ValueError("sample rate must be positive.")
    if args.silence_timeout <= 0:
        raise ValueError("silence timeout must be positive.")
    return SpeechConfig(
        model_path=Path(args.model_path) if args.model_path else None,
        sample_rate=int(args.sample_rate),
        device=args.device,
        silence_timeout_seconds=float(args.silence_timeout),
    )

from __future__ import annotations

import argparse
from pathlib import Path

from animal_speech.display import AnimalPresenter, ImageCatalog
from animal_speech.display.catalog import DEFAULT_IMAGE_DIR
from animal_speech.recognition import RecognitionLoop
from animal_speech.recognition.replay import TranscriptRecognizer, load_transcript
from animal_speech.settings import configure_logging
from animal_speech.ui import ConsoleSurface


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a recognizer transcript through the animal display.")
    parser.add_argument(
        "input_json",
        help="JSON list of utterances: strings or {\"text\": ..., \"confidence\": high|medium|low|rejected}.",
    )
    parser.add_argument("--image-dir", default=str(DEFAULT_IMAGE_DIR))
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def replay(transcript_path: Path, presenter: AnimalPresenter) -> RecognitionLoop:
    transcript = load_transcript(transcript_path)
    loop = RecognitionLoop(
        presenter,
        recognizer_factory=lambda language, config: TranscriptRecognizer(transcript, language, config),
    )
    loop.initialize()
    loop.start()
    loop.recognizer.session.wait()
    loop.drain()
    return loop


def main() -> int:
    args = build_argument_parser().parse_args()
    configure_logging(args.log_level)
    presenter = AnimalPresenter(ConsoleSurface(), catalog=ImageCatalog(args.image_dir))
    loop = replay(Path(args.input_json), presenter)
    state = presenter.state
    image = state.image_source.name if state.image_source is not None else "-"
    print(f"\nFinal: animal={state.label_text or '-'} image={image} completion={loop.last_completion.value}")
    loop.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

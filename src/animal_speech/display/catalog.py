from __future__ import annotations

import logging
from pathlib import Path

from animal_speech.core.vocabulary import VOCABULARY, Vocabulary

DEFAULT_IMAGE_DIR = Path(__file__).resolve().parent.parent / "resources" / "images" / "animals"

logger = logging.getLogger(__name__)


class ImageCatalog:
    """Resolves ``<name>.jpg`` picture files for vocabulary entries."""

    def __init__(self, image_dir: str | Path = DEFAULT_IMAGE_DIR, vocabulary: Vocabulary = VOCABULARY) -> None:
        self.image_dir = Path(image_dir)
        self.vocabulary = vocabulary

    def path_for(self, name: str) -> Path:
        return self.image_dir / self.vocabulary.image_name(name)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def missing(self) -> list[str]:
        return [name for name in self.vocabulary if not self.exists(name)]

    def warn_missing(self) -> list[str]:
        """Log which vocabulary entries have no picture; pictures are not bundled."""
        missing = self.missing()
        if missing:
            logger.warning(
                "%d of %d animal pictures missing under %s; supply <animal>.jpg files with --image-dir",
                len(missing),
                len(self.vocabulary),
                self.image_dir,
            )
        return missing

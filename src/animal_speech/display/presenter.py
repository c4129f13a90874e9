from __future__ import annotations

import logging
from pathlib import Path

from animal_speech.core.models import DisplayState
from animal_speech.core.vocabulary import VOCABULARY, Vocabulary, normalize
from animal_speech.ui.surface import DisplaySurface

from .catalog import ImageCatalog

logger = logging.getLogger(__name__)


class AnimalPresenter:
    def __init__(
        self,
        surface: DisplaySurface,
        vocabulary: Vocabulary = VOCABULARY,
        catalog: ImageCatalog | None = None,
    ) -> None:
        self.surface = surface
        self.vocabulary = vocabulary
        self.catalog = catalog or ImageCatalog(vocabulary=vocabulary)
        self._state = DisplayState()

    @property
    def state(self) -> DisplayState:
        return DisplayState(image_source=self._state.image_source, label_text=self._state.label_text)

    def show_animal(self, text: str) -> bool:
        """Show ``text`` as the current animal; returns whether it was a known one.

        Unknown words only replace the label, the previous picture stays up.
        """
        cleaned = normalize(text)
        matched = cleaned in self.vocabulary
        if matched:
            self._set_image(self.catalog.path_for(cleaned))
        else:
            logger.debug("No picture for %r", cleaned)
        self._state.label_text = cleaned
        self.surface.set_label_text(cleaned)
        return matched

    def _set_image(self, source: Path) -> None:
        self._state.image_source = source
        self.surface.set_image_source(source)

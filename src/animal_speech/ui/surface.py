from __future__ import annotations

from pathlib import Path


class DisplaySurface:
    """
    The two UI-bound fields the presenter writes to.
    Implementations are only ever called from the thread that owns the UI.
    """

    def set_image_source(self, source: Path) -> None:
        raise NotImplementedError

    def set_label_text(self, text: str) -> None:
        raise NotImplementedError


class ConsoleSurface(DisplaySurface):
    def __init__(self, write=print) -> None:
        self._write = write
        self._image: Path | None = None

    def set_image_source(self, source: Path) -> None:
        self._image = source

    def set_label_text(self, text: str) -> None:
        image = self._image.name if self._image is not None else "-"
        self._write(f"animal={text or '-':<12} image={image}")

from .catalog import DEFAULT_IMAGE_DIR, ImageCatalog
from .presenter import AnimalPresenter

__all__ = ["AnimalPresenter", "DEFAULT_IMAGE_DIR", "ImageCatalog"]

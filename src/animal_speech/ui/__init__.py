from .surface import ConsoleSurface, DisplaySurface

__all__ = ["ConsoleSurface", "DisplaySurface"]

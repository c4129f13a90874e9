from __future__ import annotations

import base64
import logging
from pathlib import Path

try:
    import cv2
except Exception:  # pragma: no cover - runtime environment dependent
    cv2 = None

logger = logging.getLogger(__name__)


def encode_png(path: Path, max_size: tuple[int, int]) -> bytes | None:
    """Read a picture, shrink it to fit ``max_size`` and return it as PNG bytes.

    Tk's PhotoImage cannot decode JPEG, so pictures are re-encoded. Returns
    ``None`` when the file is missing or unreadable.
    """
    if cv2 is None:
        logger.warning("opencv-python is not available; pictures are disabled.")
        return None
    if not Path(path).is_file():
        logger.debug("Picture not found: %s", path)
        return None
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        logger.warning("Could not decode picture: %s", path)
        return None
    height, width = image.shape[:2]
    max_width, max_height = max_size
    scale = min(max_width / float(width), max_height / float(height), 1.0)
    if scale < 1.0:
        size = (max(1, int(width * scale)), max(1, int(height * scale)))
        image = cv2.resize(image, size, interpolation=cv2.INTER_AREA)
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        logger.warning("Could not encode picture: %s", path)
        return None
    return buffer.tobytes()


def png_to_photo_data(png: bytes) -> str:
    return base64.b64encode(png).decode("ascii")

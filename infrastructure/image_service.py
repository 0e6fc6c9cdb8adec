"""Image decoding for slideshow playback.

Decodes pair files with Pillow (EXIF orientation applied, optionally bounded
to a maximum side) and converts decoded images to `QImage` for Qt surfaces.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError
from PySide6.QtGui import QImage
from loguru import logger

from core.errors import CorruptOrIncompletePair
from core.models import PhotoPair


class ImageService:
    """Decodes store images into in-memory handles."""

    def __init__(self, settings: object | None = None) -> None:
        """Read the optional `slideshow.max_image_side` bound from settings."""
        self._max_side = 0
        if settings is not None:
            try:
                self._max_side = int(settings.get("slideshow.max_image_side", 0) or 0)
            except (ValueError, TypeError):
                self._max_side = 0

    @property
    def max_side(self) -> int:
        """Longest side of decoded images; 0 keeps the full resolution."""
        return self._max_side

    def decode(self, path: str, max_side: int | None = None) -> Image.Image:
        """Decode `path` into an RGB Pillow image.

        Raises:
            CorruptOrIncompletePair: The file is gone or cannot be decoded.
        """
        side = self._max_side if max_side is None else int(max_side)
        try:
            with Image.open(path) as im:
                im.load()
                try:
                    im = ImageOps.exif_transpose(im)
                except (OSError, ValueError, AttributeError):
                    pass
                if side > 0:
                    im.thumbnail((side, side), Image.Resampling.LANCZOS)
                return im.convert("RGB")
        except FileNotFoundError as ex:
            raise CorruptOrIncompletePair(path, "file no longer exists") from ex
        except (UnidentifiedImageError, OSError, ValueError) as ex:
            logger.debug("Pillow decode failed for {}: {}", path, ex)
            raise CorruptOrIncompletePair(path, str(ex)) from ex

    def load_pair(self, pair: PhotoPair) -> PhotoPair:
        """Return a copy of `pair` with both images decoded."""
        original = self.decode(pair.original_path)
        themed = self.decode(pair.themed_path)
        return replace(pair, decoded_original=original, decoded_themed=themed)

    def to_qimage(self, pil_img: Any) -> QImage | None:
        """Convert a Pillow image to `QImage` and detach from the source buffer."""
        try:
            mode = pil_img.mode
            if mode not in ("RGBA", "RGB"):
                pil_img = pil_img.convert("RGBA")
                mode = pil_img.mode
            if mode == "RGB":
                data = pil_img.tobytes("raw", "RGB")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 3, QImage.Format_RGB888
                )
            else:
                data = pil_img.tobytes("raw", "RGBA")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 4, QImage.Format_RGBA8888
                )
            if qimg is None or qimg.isNull():
                return None
            return qimg.copy()
        except (ValueError, TypeError, AttributeError) as ex:
            logger.debug("PIL->QImage convert failed: {}", ex)
            return None

"""Image encoding for Word image placeholders."""

from __future__ import annotations

import io
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from docx.shared import Emu
from PIL import Image, ImageOps, UnidentifiedImageError

from droneops.utils.errors import InvalidImage

EMU_PER_PIXEL = 9525


@dataclass(frozen=True)
class EmbeddedImage:
    """PNG payload plus the display size it is embedded at."""

    data: bytes
    width: Emu
    height: Emu

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.data)


class ImageEncoder(Protocol):
    """Turns raw image bytes into an embeddable picture of a fixed size."""

    def encode(self, image_bytes: bytes, width_px: int, height_px: int) -> EmbeddedImage:
        """Encode ``image_bytes`` for display at ``width_px`` x ``height_px``."""


class PillowImageEncoder:
    """Normalize arbitrary raster payloads to PNG at the target pixel size."""

    def encode(self, image_bytes: bytes, width_px: int, height_px: int) -> EmbeddedImage:
        try:
            with Image.open(io.BytesIO(image_bytes)) as source:
                source.load()
                source_format = source.format
                image = ImageOps.exif_transpose(source)
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidImage("Image payload is not a readable raster image") from exc

        if image.size == (width_px, height_px) and source_format == "PNG":
            data = image_bytes
        else:
            if image.mode not in {"RGB", "RGBA"}:
                image = image.convert("RGBA")
            resized = image.resize((width_px, height_px), Image.Resampling.LANCZOS)
            data = _png_bytes(resized)

        return EmbeddedImage(
            data=data,
            width=px_to_emu(width_px),
            height=px_to_emu(height_px),
        )


def px_to_emu(pixels: int) -> Emu:
    """Convert screen pixels at 96 dpi to English Metric Units."""

    return Emu(pixels * EMU_PER_PIXEL)


@lru_cache(maxsize=8)
def blank_image_png(width_px: int, height_px: int) -> bytes:
    """Return a fully transparent PNG used for empty image slots."""

    image = Image.new("RGBA", (width_px, height_px), (0, 0, 0, 0))
    return _png_bytes(image)


def _png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()

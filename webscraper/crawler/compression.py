"""JPEG re-encoding that searches for the quality hitting half the original size."""

from __future__ import annotations

import io
import logging
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .constants import (
    DEFAULT_INITIAL_QUALITY,
    DEFAULT_MAX_QUALITY_ITERATIONS,
    DEFAULT_MIN_QUALITY,
    DEFAULT_QUALITY_TOLERANCE,
)
from .errors import ImageDecodeError
from .types import CompressionResult


LOGGER = logging.getLogger(__name__)

PILLOW_MAX_QUALITY = 95


def pillow_quality(quality: float) -> int:
    """Map a 0..1 quality onto Pillow's 1..95 JPEG scale."""

    return max(1, min(PILLOW_MAX_QUALITY, round(quality * PILLOW_MAX_QUALITY)))


def decode_image(data: bytes) -> Image.Image:
    if not data:
        raise ImageDecodeError("Empty image payload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc

    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def encode_jpeg(image: Image.Image, quality: float) -> bytes:
    out = io.BytesIO()
    image.save(out, format="JPEG", quality=pillow_quality(quality), optimize=True)
    return out.getvalue()


class JpegCompressor:
    """Re-encode images as JPEG at the highest quality that fits `len(original) / 2`.

    Quality 1.0 is used if it already fits; the configured floor is used if even
    that is too large; otherwise a bounded binary search, first probing
    `initial_quality`, stops once the encoded size is within `tolerance` of the target.
    """

    def __init__(
        self,
        *,
        initial_quality: float = DEFAULT_INITIAL_QUALITY,
        min_quality: float = DEFAULT_MIN_QUALITY,
        tolerance: float = DEFAULT_QUALITY_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_QUALITY_ITERATIONS,
    ) -> None:
        if not 0.0 < min_quality <= 1.0:
            raise ValueError("min_quality must be in (0, 1]")
        if not min_quality <= initial_quality <= 1.0:
            raise ValueError("initial_quality must be in [min_quality, 1]")
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.initial_quality = initial_quality
        self.min_quality = min_quality
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    def find_quality(self, image: Image.Image, original_size: int) -> tuple[float, bytes]:
        target = original_size / 2

        encoded = encode_jpeg(image, 1.0)
        if len(encoded) <= target:
            return 1.0, encoded

        floor_encoded = encode_jpeg(image, self.min_quality)
        if len(floor_encoded) > target:
            return self.min_quality, floor_encoded

        best_quality, best_encoded = self.min_quality, floor_encoded
        low, high = self.min_quality, 1.0
        mid = self.initial_quality
        for _ in range(self.max_iterations):
            if not low < mid < high:
                mid = (low + high) / 2
            encoded = encode_jpeg(image, mid)
            size = len(encoded)
            if size <= target:
                best_quality, best_encoded = mid, encoded
                if size >= target * (1 - self.tolerance):
                    break
                low = mid
            else:
                high = mid

        return best_quality, best_encoded

    def compress_and_save(self, image_bytes: bytes, output_dir: str | Path) -> CompressionResult:
        """Compress `image_bytes` and write them to `<output_dir>/<uuid4>.jpg`."""

        image = decode_image(image_bytes)
        quality, encoded = self.find_quality(image, len(image_bytes))

        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{uuid.uuid4()}.jpg"
        out_path.write_bytes(encoded)

        LOGGER.debug(
            "Compressed %d -> %d bytes at quality %.3f: %s",
            len(image_bytes),
            len(encoded),
            quality,
            out_path,
        )
        return CompressionResult(compressed_size=len(encoded), path=str(out_path), quality=quality)


__all__ = [
    "JpegCompressor",
    "decode_image",
    "encode_jpeg",
    "pillow_quality",
]

"""Conversion of raw sample bytes into fixed-length float32 vectors."""

from __future__ import annotations

import io
from collections.abc import Callable

import numpy as np
from PIL import Image, UnidentifiedImageError

from ondevice_training.config import TrainingConfig

SampleTransform = Callable[[bytes], np.ndarray]


def normalize_pixel(value: float) -> float:
    """Map a byte value in [0, 255] to [-1, 1]."""
    return ((value / 255) - 0.5) / 0.5


def normalize_pixels(values: np.ndarray) -> np.ndarray:
    """Vectorised :func:`normalize_pixel`, returns float32."""
    scaled = values.astype(np.float32) / np.float32(255)
    return (scaled - np.float32(0.5)) / np.float32(0.5)


def bytes_to_vector(data: bytes, decode_image: bool = False) -> np.ndarray:
    """Convert sample bytes to a float32 array of shape ``(1, n)``.

    By default every byte becomes one element.  With ``decode_image`` the
    bytes are decoded as an image file and converted to grayscale first,
    giving one element per pixel.

    Raises:
        ValueError: ``decode_image`` is set and the bytes are not an image.
    """
    if decode_image:
        try:
            with Image.open(io.BytesIO(data)) as img:
                pixels = np.asarray(img.convert("L"), dtype=np.uint8)
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"cannot decode image: {exc}") from exc
        flat = pixels.reshape(-1)
    else:
        flat = np.frombuffer(data, dtype=np.uint8)
    return flat.astype(np.float32).reshape(1, -1)


def build_sample_transform(config: TrainingConfig) -> SampleTransform:
    """Build the bytes -> vector transform selected by ``config``."""

    def _transform(data: bytes) -> np.ndarray:
        vector = bytes_to_vector(data, decode_image=config.decode_images)
        if config.normalize_pixels:
            vector = normalize_pixels(vector)
        return vector

    return _transform

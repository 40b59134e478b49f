"""Host <-> device image transfer for the reserved "input"/"output" images.

Host images are numpy uint8 arrays of shape (height, width, 3): interleaved
RGB, row-major, no padding. That is exactly the byte layout of the device
buffers, so transfers are a flat copy.
"""

from __future__ import annotations

import numpy as np

from pipeline_runtime.buffers import IMAGE_DTYPE, RGB_CHANNELS, DynamicImage, image_length
from pipeline_runtime.errors import ShapeMismatchError
from pipeline_runtime.registry import INPUT, OUTPUT, BufferRegistry


def image_size(image: np.ndarray) -> tuple[int, int]:
    """(width, height) of a host RGB image, validating its layout."""
    if not isinstance(image, np.ndarray):
        raise ShapeMismatchError(f"Expected an RGB numpy array, got {type(image).__name__}")
    if image.dtype != IMAGE_DTYPE:
        raise ShapeMismatchError("RGB images must be uint8", expected="uint8", actual=str(image.dtype))
    if image.ndim != 3 or image.shape[2] != RGB_CHANNELS:
        raise ShapeMismatchError(
            "RGB images must have shape (height, width, 3)",
            expected="(height, width, 3)",
            actual=tuple(image.shape),
        )
    height, width = image.shape[:2]
    return int(width), int(height)


def _reserved(registry: BufferRegistry, name: str) -> DynamicImage:
    entry = registry.lookup(name)
    if not isinstance(entry, DynamicImage):
        # the registry refuses script buffers under reserved names
        raise ShapeMismatchError(f"Reserved image '{name}' is missing or not a dynamic image")
    return entry


def upload_image(registry: BufferRegistry, image: np.ndarray) -> None:
    """Write image into "input". The registry must already be at the image's size."""
    size = image_size(image)
    if size != registry.frame_size:
        raise ShapeMismatchError(
            "Image size does not match the current frame size",
            expected=registry.frame_size,
            actual=size,
        )
    entry = _reserved(registry, INPUT)
    entry.buffer.write_from_numpy(np.ascontiguousarray(image).reshape(-1))


def download_image(registry: BufferRegistry) -> np.ndarray:
    """Read "output" into a new (height, width, 3) image at the current frame size."""
    width, height = registry.frame_size
    expected = image_length(width, height)
    entry = _reserved(registry, OUTPUT)

    pixels = entry.buffer.to_numpy()
    if pixels.dtype != IMAGE_DTYPE or pixels.size != expected:
        raise ShapeMismatchError(
            "Output buffer does not hold a frame-sized RGB image",
            expected=expected,
            actual=pixels.size,
        )
    return pixels.reshape(height, width, RGB_CHANNELS)

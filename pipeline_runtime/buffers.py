"""Typed buffer handles: what a named registry entry is.

Each kind is its own dataclass; code dispatches on them with isinstance and
the RGB_CHANNELS / dtype constants below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from pipeline_runtime.backend import DeviceBuffer

RGB_CHANNELS = 3

INT_DTYPE = np.dtype(np.int64)
FLOAT_DTYPE = np.dtype(np.float64)
IMAGE_DTYPE = np.dtype(np.uint8)


def image_length(width: int, height: int) -> int:
    return width * height * RGB_CHANNELS


@dataclass
class IntBuffer:
    buffer: DeviceBuffer
    kind_name = "int buffer"

    @property
    def length(self) -> int:
        return self.buffer.length


@dataclass
class FloatBuffer:
    buffer: DeviceBuffer
    kind_name = "float buffer"

    @property
    def length(self) -> int:
        return self.buffer.length


@dataclass
class DynamicImage:
    """RGB image whose shape follows the registry's current frame size."""
    buffer: DeviceBuffer
    kind_name = "dynamic image"


@dataclass
class FixedImage:
    buffer: DeviceBuffer
    width: int
    height: int
    kind_name = "image"


TypedBuffer = Union[IntBuffer, FloatBuffer, DynamicImage, FixedImage]

SCALAR_BUFFER_TYPES = (IntBuffer, FloatBuffer)
IMAGE_BUFFER_TYPES = (DynamicImage, FixedImage)

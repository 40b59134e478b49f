"""Buffer registry: every named device buffer of a running pipeline.

The registry is created once per executor and lives as long as it does. It is
shared by reference with the script context, so a buffer created by one script
statement is visible to the next one. Entries are added during init and never
removed; the two reserved dynamic images "input" and "output" always exist and
always match the current frame size.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

import numpy as np

from pipeline_runtime.backend import Backend
from pipeline_runtime.buffers import (
    FLOAT_DTYPE,
    IMAGE_DTYPE,
    IMAGE_BUFFER_TYPES,
    INT_DTYPE,
    SCALAR_BUFFER_TYPES,
    DynamicImage,
    FixedImage,
    FloatBuffer,
    IntBuffer,
    TypedBuffer,
    image_length,
)
from pipeline_runtime.errors import (
    BufferKindError,
    ReservedNameError,
    ScriptError,
    ShapeMismatchError,
    UnknownBufferError,
)
from pipeline_runtime.references import BufferRef, ImageRef, ScriptRef

logger = logging.getLogger("pipeline_runtime.registry")

INPUT = "input"
OUTPUT = "output"
RESERVED_NAMES = (INPUT, OUTPUT)

_SCALAR_KINDS = {"int": (IntBuffer, INT_DTYPE), "float": (FloatBuffer, FLOAT_DTYPE)}


def _check_frame_size(size) -> tuple[int, int]:
    try:
        width, height = (int(v) for v in size)
    except (TypeError, ValueError) as exc:
        raise ShapeMismatchError(f"Frame size must be a (width, height) pair, got {size!r}") from exc
    if width <= 0 or height <= 0:
        raise ShapeMismatchError(f"Frame size must be positive, got {width}x{height}")
    return width, height


def _is_integral(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _is_real(value) -> bool:
    return _is_integral(value) or isinstance(value, (float, np.floating))


def _to_host_array(name: str, kind: str, values) -> np.ndarray:
    """Convert script values to a host array for an int or float buffer."""
    _, dtype = _SCALAR_KINDS[kind]
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ScriptError(
            f"Initial values of {kind} buffer '{name}' must be a list, got {type(values).__name__}",
            phase="init",
        )
    accepts = _is_integral if kind == "int" else _is_real
    items = list(values)
    for index, value in enumerate(items):
        if not accepts(value):
            raise ScriptError(
                f"Value {index} of {kind} buffer '{name}' is a {type(value).__name__}, "
                f"expected {'an integer' if kind == 'int' else 'a number'}",
                phase="init",
            )
    try:
        return np.array(items, dtype=dtype)
    except OverflowError as exc:
        raise ScriptError(f"Value out of range for {kind} buffer '{name}'", phase="init") from exc


class BufferRegistry:
    """Name-keyed store of typed device buffers."""

    def __init__(self, backend: Backend, frame_size: tuple[int, int]):
        self._backend = backend
        self._frame_size = _check_frame_size(frame_size)
        self._entries: dict[str, TypedBuffer] = {}
        for name in RESERVED_NAMES:
            self._entries[name] = DynamicImage(self._allocate_image(*self._frame_size))

    # ── queries ──

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def frame_size(self) -> tuple[int, int]:
        return self._frame_size

    @property
    def frame_width(self) -> int:
        return self._frame_size[0]

    @property
    def frame_height(self) -> int:
        return self._frame_size[1]

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def lookup(self, name: str) -> TypedBuffer | None:
        return self._entries.get(name)

    def resolve_scalar_buffer(self, name: str) -> IntBuffer | FloatBuffer:
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownBufferError(name, "buffer")
        if not isinstance(entry, SCALAR_BUFFER_TYPES):
            raise BufferKindError(name, "an int or float buffer", entry.kind_name)
        return entry

    def resolve_image(self, name: str) -> DynamicImage | FixedImage:
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownBufferError(name, "image")
        if not isinstance(entry, IMAGE_BUFFER_TYPES):
            raise BufferKindError(name, "an image", entry.kind_name)
        return entry

    def reference(self, name: str) -> ScriptRef:
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownBufferError(name)
        if isinstance(entry, SCALAR_BUFFER_TYPES):
            return BufferRef(name, entry.length, self)
        if isinstance(entry, FixedImage):
            return ImageRef(name, entry.width, entry.height, self)
        return ImageRef(name, self.frame_width, self.frame_height, self)

    def references(self) -> dict[str, ScriptRef]:
        return {name: self.reference(name) for name in self._entries}

    # ── creation ──

    def create_scalar_buffer(self, name: str, kind: str, initial_values) -> BufferRef:
        """Allocate an int or float buffer holding initial_values, replacing any entry named name."""
        if kind not in _SCALAR_KINDS:
            raise ValueError(f"kind must be 'int' or 'float', got {kind!r}")
        self._check_name(name)
        entry_type, _ = _SCALAR_KINDS[kind]
        data = _to_host_array(name, kind, initial_values)
        self._insert(name, entry_type(self._backend.allocate_buffer(data)))
        logger.debug(f"Created {kind} buffer '{name}' ({data.size} elements)")
        return BufferRef(name, int(data.size), self)

    def create_int_buffer(self, name: str, values) -> BufferRef:
        return self.create_scalar_buffer(name, "int", values)

    def create_float_buffer(self, name: str, values) -> BufferRef:
        return self.create_scalar_buffer(name, "float", values)

    def create_dynamic_image(self, name: str) -> ImageRef:
        self._check_name(name)
        self._insert(name, DynamicImage(self._allocate_image(*self._frame_size)))
        logger.debug(f"Created dynamic image '{name}' ({self.frame_width}x{self.frame_height})")
        return ImageRef(name, self.frame_width, self.frame_height, self)

    def create_fixed_image(self, name: str, width: int, height: int) -> ImageRef:
        self._check_name(name)
        if not (_is_integral(width) and _is_integral(height)) or width <= 0 or height <= 0:
            raise ScriptError(
                f"Image '{name}' needs positive integer dimensions, got {width!r}x{height!r}",
                phase="init",
            )
        width, height = int(width), int(height)
        self._insert(name, FixedImage(self._allocate_image(width, height), width, height))
        logger.debug(f"Created image '{name}' ({width}x{height})")
        return ImageRef(name, width, height, self)

    # ── frame size ──

    def set_frame_size(self, size: tuple[int, int]) -> bool:
        """Switch to a new frame size, reallocating every dynamic image.

        Returns True if the size changed. Buffers of every other kind, and the
        identity of their device memory, are left alone.
        """
        size = _check_frame_size(size)
        if size == self._frame_size:
            return False
        logger.info(
            f"Frame size changed from {self.frame_width}x{self.frame_height} "
            f"to {size[0]}x{size[1]}, resizing dynamic images"
        )
        self._frame_size = size
        for name, entry in self._entries.items():
            if isinstance(entry, DynamicImage):
                entry.buffer = self._allocate_image(*size)
        return True

    # ── internals ──

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise ScriptError(f"Buffer names must be non-empty strings, got {name!r}", phase="init")
        if name in RESERVED_NAMES:
            raise ReservedNameError(name)
        if name.startswith("__") and name.endswith("__"):
            # run() binds every buffer as a script global
            raise ScriptError(f"Buffer name '{name}' would shadow a script global", phase="init")

    def _insert(self, name: str, entry: TypedBuffer) -> None:
        if name in self._entries:
            logger.warning(f"Buffer '{name}' is created twice, replacing the previous one")
        self._entries[name] = entry

    def _allocate_image(self, width: int, height: int):
        return self._backend.allocate_zeros(image_length(width, height), IMAGE_DTYPE)

"""Scripting-visible references to registry entries.

A reference is a name plus the shape seen when it was handed out. It owns no
device memory; the resolver looks the name up in the registry each time the
reference is used. Shape queries go back to the registry as well, so a
reference to a dynamic image reports the current frame size after a resize
rather than the size cached at creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from pipeline_runtime.buffers import DynamicImage

if TYPE_CHECKING:
    from pipeline_runtime.registry import BufferRegistry


@dataclass(frozen=True)
class BufferRef:
    """Reference to an int or float buffer. ``len(ref)`` gives its element count."""

    name: str
    cached_length: int
    registry: BufferRegistry | None = field(default=None, repr=False, compare=False)

    def len(self) -> int:
        if self.registry is None:
            return self.cached_length
        return self.registry.resolve_scalar_buffer(self.name).length

    def __len__(self) -> int:
        return self.len()


@dataclass(frozen=True)
class ImageRef:
    """Reference to a fixed or dynamic RGB image."""

    name: str
    cached_width: int
    cached_height: int
    registry: BufferRegistry | None = field(default=None, repr=False, compare=False)

    def _shape(self) -> tuple[int, int]:
        if self.registry is None:
            return self.cached_width, self.cached_height
        entry = self.registry.resolve_image(self.name)
        if isinstance(entry, DynamicImage):
            return self.registry.frame_size
        return entry.width, entry.height

    @property
    def width(self) -> int:
        return self._shape()[0]

    @property
    def height(self) -> int:
        return self._shape()[1]


ScriptRef = Union[BufferRef, ImageRef]

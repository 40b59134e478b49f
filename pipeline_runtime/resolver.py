"""Kernel argument resolver: script values -> concrete kernel arguments.

Each script argument is tried, left to right, against a fixed priority:

    1. numeric scalar    -> one scalar argument of the value's exact width
    2. BufferRef         -> the int/float device buffer
    3. ImageRef          -> the device buffer; fixed images add width, height (uint32)

After the script arguments, the current frame width and height are appended as
uint32, so every kernel can recover the frame shape. Dynamic images therefore
never carry their own shape.

Python ints bind as int64 and Python floats as float64, the native widths of
the script language. numpy scalars keep their own width; nothing is widened or
narrowed.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from pipeline_runtime.buffers import FixedImage
from pipeline_runtime.errors import UnsupportedArgumentError
from pipeline_runtime.invocation import BufferArg, KernelArg, KernelInvocation, ScalarArg
from pipeline_runtime.references import BufferRef, ImageRef
from pipeline_runtime.registry import BufferRegistry

SCALAR_DTYPES = frozenset(
    np.dtype(t)
    for t in (
        np.int8, np.uint8, np.int16, np.uint16,
        np.int32, np.uint32, np.int64, np.uint64,
        np.float32, np.float64,
    )
)

DIM_DTYPE = np.uint32


class KernelArgumentResolver:
    """Builds KernelInvocations against one registry."""

    def __init__(self, registry: BufferRegistry):
        self._registry = registry

    def resolve(self, kernel_name: str, values: Sequence) -> KernelInvocation:
        """Resolve every value before returning, so a failure binds and runs nothing."""
        if isinstance(values, (str, bytes)) or not isinstance(values, (Sequence, np.ndarray)):
            raise UnsupportedArgumentError(
                kernel_name, 0, values, "kernel arguments must be passed as a list"
            )

        args: list[KernelArg] = []
        for position, value in enumerate(values):
            args.extend(self._resolve_one(kernel_name, position, value))

        width, height = self._registry.frame_size
        args.append(ScalarArg(DIM_DTYPE(width)))
        args.append(ScalarArg(DIM_DTYPE(height)))
        return KernelInvocation(kernel_name, args, (width, height))

    def _resolve_one(self, kernel_name: str, position: int, value) -> list[KernelArg]:
        scalar = self._as_scalar(kernel_name, position, value)
        if scalar is not None:
            return [ScalarArg(scalar)]

        if isinstance(value, BufferRef):
            entry = self._registry.resolve_scalar_buffer(value.name)
            return [BufferArg(value.name, entry.buffer)]

        if isinstance(value, ImageRef):
            entry = self._registry.resolve_image(value.name)
            if isinstance(entry, FixedImage):
                return [
                    BufferArg(value.name, entry.buffer),
                    ScalarArg(DIM_DTYPE(entry.width)),
                    ScalarArg(DIM_DTYPE(entry.height)),
                ]
            return [BufferArg(value.name, entry.buffer)]

        raise UnsupportedArgumentError(kernel_name, position, value)

    @staticmethod
    def _as_scalar(kernel_name: str, position: int, value) -> np.generic | None:
        if isinstance(value, (bool, np.bool_)):
            return None
        if isinstance(value, np.generic):
            return value if value.dtype in SCALAR_DTYPES else None
        if isinstance(value, int):
            try:
                return np.int64(value)
            except OverflowError:
                raise UnsupportedArgumentError(
                    kernel_name, position, value, "integer does not fit in 64 bits"
                ) from None
        if isinstance(value, float):
            return np.float64(value)
        return None

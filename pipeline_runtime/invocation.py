"""Concrete kernel invocations produced by the argument resolver.

A KernelInvocation is what a Backend receives: the kernel name, the ordered
argument list (each either a scalar of an exact numpy width or a device
buffer) and the global work size.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

import numpy as np

if TYPE_CHECKING:
    from pipeline_runtime.backend import DeviceBuffer


@dataclass(frozen=True)
class ScalarArg:
    value: np.generic

    @property
    def dtype(self) -> np.dtype:
        return self.value.dtype


@dataclass(frozen=True)
class BufferArg:
    name: str
    buffer: DeviceBuffer


KernelArg = Union[ScalarArg, BufferArg]


@dataclass
class KernelInvocation:
    kernel_name: str
    args: list[KernelArg] = field(default_factory=list)
    global_size: tuple[int, int] = (1, 1)

    def native_args(self) -> list[Any]:
        """Arguments as the backend binds them: native buffer handles and numpy scalars."""
        out = []
        for arg in self.args:
            if isinstance(arg, BufferArg):
                out.append(arg.buffer.native_handle)
            else:
                out.append(arg.value)
        return out

"""Host backend: runs kernels on the CPU with numpy.

The kernel "program" is Python source. Each top-level function is a kernel
and receives exactly the arguments a device kernel would: flat numpy arrays
for buffers (writable views of the backing storage) and numpy scalars, in the
resolved order, including the trailing frame width and height. Kernels are
expected to cover the whole work size themselves, typically vectorized:

    def invert(src, dst, width, height):
        dst[:] = 255 - src

``np`` is predefined in the program namespace. Useful without a GPU and as a
reference implementation of device kernels.
"""

from __future__ import annotations

import builtins
from typing import Any

import numpy as np

from pipeline_runtime.backend import Backend, DeviceBuffer, check_host_data
from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.errors import DeviceError, PipelineError, SetupError, UnknownKernelError
from pipeline_runtime.invocation import KernelInvocation


class HostBuffer(DeviceBuffer):
    """Buffer backed by a 1-D numpy array."""

    def __init__(self, data: np.ndarray):
        self._data = data

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def length(self) -> int:
        return int(self._data.size)

    @property
    def native_handle(self) -> np.ndarray:
        return self._data

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def write_from_numpy(self, data: np.ndarray) -> None:
        self._data[:] = check_host_data(data, self)


class HostBackend(Backend):
    """Backend implementation running Python kernels on the host CPU."""

    def __init__(self, config: PipelineConfig | None = None):
        self._config = config or DEFAULT_CONFIG
        self._namespace: dict[str, Any] | None = None
        self.last_invocation: KernelInvocation | None = None
        self.enqueue_count = 0

    @property
    def name(self) -> str:
        return "host"

    @property
    def device_name(self) -> str:
        return "CPU (numpy)"

    @property
    def program_namespace(self) -> dict[str, Any]:
        if self._namespace is None:
            raise SetupError("No kernel program has been built")
        return self._namespace

    def build_program(self, source: str) -> None:
        namespace = {"__name__": "__kernels__", "__builtins__": builtins, "np": np}
        try:
            exec(compile(source, "<kernels>", "exec"), namespace)
        except Exception as exc:
            raise SetupError(f"Could not build host kernel program: {exc}") from exc
        self._namespace = namespace

    def allocate_buffer(self, data: np.ndarray) -> HostBuffer:
        return HostBuffer(np.array(data, copy=True).reshape(-1))

    def allocate_zeros(self, length: int, dtype: np.dtype) -> HostBuffer:
        return HostBuffer(np.zeros(length, dtype=dtype))

    def enqueue_kernel(self, invocation: KernelInvocation) -> None:
        kernel = self.program_namespace.get(invocation.kernel_name)
        if not callable(kernel) or invocation.kernel_name.startswith("_"):
            raise UnknownKernelError(invocation.kernel_name, self.name)
        try:
            kernel(*invocation.native_args())
        except PipelineError:
            raise
        except Exception as exc:
            raise DeviceError(
                f"Kernel '{invocation.kernel_name}' failed: {exc}",
                {"kernel": invocation.kernel_name, "backend": self.name},
            ) from exc
        self.last_invocation = invocation
        self.enqueue_count += 1

    def synchronize(self) -> None:
        pass  # kernels run inline

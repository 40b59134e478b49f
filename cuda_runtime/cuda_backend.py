"""CUDA backend: CuPy-based Backend and DeviceBuffer implementations.

Implements the Backend ABC from pipeline_runtime.backend. The kernel program
is CUDA C compiled with NVRTC through cupy.RawModule; kernels must be declared
``extern "C"`` so they can be looked up by name. The grid covers the frame with
16x16 blocks; kernels must bounds-check against the trailing width/height.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from pipeline_runtime.backend import Backend, DeviceBuffer, check_host_data
from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.errors import DeviceError, SetupError, UnknownKernelError
from pipeline_runtime.invocation import KernelInvocation

try:
    import cupy as cp

    HAS_CUPY = True
except ImportError:
    cp = None
    HAS_CUPY = False

_BLOCK_2D = 16


class CUDABuffer(DeviceBuffer):
    """CUDA GPU buffer backed by a 1-D cupy.ndarray."""

    def __init__(self, data: cp.ndarray):
        self._data = data

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def length(self) -> int:
        return int(self._data.size)

    @property
    def native_handle(self) -> Any:
        """Return the underlying cupy.ndarray."""
        return self._data

    def to_numpy(self) -> np.ndarray:
        try:
            return cp.asnumpy(self._data)
        except cp.cuda.driver.CUDADriverError as exc:
            raise DeviceError(f"Could not read device buffer: {exc}") from exc

    def write_from_numpy(self, data: np.ndarray) -> None:
        """Write numpy data into the existing CUDA buffer (in-place update)."""
        data = check_host_data(data, self)
        try:
            self._data.set(data)
        except cp.cuda.driver.CUDADriverError as exc:
            raise DeviceError(f"Could not write device buffer: {exc}") from exc


class CUDABackend(Backend):
    """CUDA GPU execution backend using CuPy."""

    def __init__(self, config: PipelineConfig | None = None):
        if not HAS_CUPY:
            raise SetupError("CuPy is not installed. Install with: pip install '.[cuda]'")
        self._config = config or DEFAULT_CONFIG
        self._device_id = self._config.device_index
        try:
            self._cp_device = cp.cuda.Device(self._device_id)
            self._cp_device.use()
        except cp.cuda.runtime.CUDARuntimeError as exc:
            raise SetupError(f"Could not open CUDA device {self._device_id}: {exc}") from exc
        self._module = None
        self._kernels: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return "cuda"

    @property
    def device_name(self) -> str:
        props = cp.cuda.runtime.getDeviceProperties(self._device_id)
        name = props["name"]
        return name.decode() if isinstance(name, bytes) else str(name)

    def build_program(self, source: str) -> None:
        try:
            module = cp.RawModule(code=source)
            module.compile()
        except cp.cuda.compiler.CompileException as exc:
            raise SetupError(f"Could not build the CUDA program: {exc}") from exc
        self._module = module
        self._kernels.clear()

    def allocate_buffer(self, data: np.ndarray) -> CUDABuffer:
        try:
            return CUDABuffer(cp.asarray(np.ascontiguousarray(data).reshape(-1)))
        except cp.cuda.memory.OutOfMemoryError as exc:
            raise DeviceError(f"Could not allocate buffer ({data.nbytes} bytes): {exc}") from exc

    def allocate_zeros(self, length: int, dtype: np.dtype) -> CUDABuffer:
        try:
            return CUDABuffer(cp.zeros(length, dtype=dtype))
        except cp.cuda.memory.OutOfMemoryError as exc:
            raise DeviceError(f"Could not allocate buffer ({length} elements): {exc}") from exc

    def _kernel(self, name: str):
        if self._module is None:
            raise SetupError("No kernel program has been built")
        kernel = self._kernels.get(name)
        if kernel is None:
            try:
                kernel = self._module.get_function(name)
            except cp.cuda.driver.CUDADriverError as exc:
                raise UnknownKernelError(name, self.name) from exc
            self._kernels[name] = kernel
        return kernel

    def enqueue_kernel(self, invocation: KernelInvocation) -> None:
        kernel = self._kernel(invocation.kernel_name)
        width, height = invocation.global_size
        block_x, block_y = self._config.local_size or (_BLOCK_2D, _BLOCK_2D)
        grid = ((width + block_x - 1) // block_x, (height + block_y - 1) // block_y, 1)
        try:
            kernel(grid, (block_x, block_y, 1), tuple(invocation.native_args()))
            self.synchronize()
        except cp.cuda.driver.CUDADriverError as exc:
            raise DeviceError(
                f"Could not run kernel '{invocation.kernel_name}': {exc}",
                {"kernel": invocation.kernel_name, "backend": self.name},
            ) from exc

    def synchronize(self):
        """Synchronize CUDA device."""
        self._cp_device.synchronize()

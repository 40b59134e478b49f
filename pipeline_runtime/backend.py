"""Abstract backend interfaces for the pipeline runtime."""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.errors import DeviceError, SetupError

if TYPE_CHECKING:
    from pipeline_runtime.invocation import KernelInvocation

logger = logging.getLogger("pipeline_runtime.backend")


class DeviceBuffer(ABC):
    """Abstract flat GPU buffer with numpy interop."""

    @property
    @abstractmethod
    def dtype(self) -> np.dtype:
        ...

    @property
    @abstractmethod
    def length(self) -> int:
        """Number of elements (not bytes)."""
        ...

    @property
    def size_bytes(self) -> int:
        return self.length * self.dtype.itemsize

    @property
    @abstractmethod
    def native_handle(self) -> Any:
        """Backend-native buffer object (e.g. cl.Buffer for OpenCL)."""
        ...

    @abstractmethod
    def to_numpy(self) -> np.ndarray:
        """Blocking read of the whole buffer into a new 1-D host array."""
        ...

    @abstractmethod
    def write_from_numpy(self, data: np.ndarray) -> None:
        """Blocking write of data (same dtype, same element count) into the buffer."""
        ...


class Backend(ABC):
    """Abstract single-queue GPU execution backend.

    Every operation is synchronous: it returns once the device has finished.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def device_name(self) -> str:
        ...

    @abstractmethod
    def build_program(self, source: str) -> None:
        """Compile kernel source; kernels are looked up by name at enqueue time."""
        ...

    @abstractmethod
    def allocate_buffer(self, data: np.ndarray) -> DeviceBuffer:
        ...

    @abstractmethod
    def allocate_zeros(self, length: int, dtype: np.dtype) -> DeviceBuffer:
        ...

    @abstractmethod
    def enqueue_kernel(self, invocation: KernelInvocation) -> None:
        ...

    @abstractmethod
    def synchronize(self) -> None:
        ...


def check_host_data(data: np.ndarray, buffer: DeviceBuffer) -> np.ndarray:
    """Shared write validation: dtype and element count must match the buffer."""
    data = np.ascontiguousarray(data).reshape(-1)
    if data.dtype != buffer.dtype:
        raise DeviceError(f"Cannot write {data.dtype} data into a {buffer.dtype} buffer")
    if data.size != buffer.length:
        raise DeviceError(
            f"Cannot write {data.size} elements into a buffer of {buffer.length}",
            {"expected": buffer.length, "actual": data.size},
        )
    return data


# name -> (module, class); imported lazily so optional runtimes stay optional
_BACKENDS: dict[str, tuple[str, str]] = {
    "opencl": ("pipeline_runtime.opencl_backend", "OpenCLBackend"),
    "host": ("pipeline_runtime.host_backend", "HostBackend"),
    "metal": ("pipeline_runtime.metal_backend", "MetalBackend"),
    "cuda": ("cuda_runtime.cuda_backend", "CUDABackend"),
}


def create_backend(config: PipelineConfig | None = None) -> Backend:
    """Instantiate the backend named by config.backend."""
    config = config or DEFAULT_CONFIG
    try:
        module_name, class_name = _BACKENDS[config.backend]
    except KeyError:
        raise SetupError(
            f"Unknown backend '{config.backend}'",
            {"available": ", ".join(sorted(_BACKENDS))},
        ) from None

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise SetupError(
            f"Backend '{config.backend}' is not available: {exc}",
            {"module": module_name},
        ) from exc

    backend = getattr(module, class_name)(config)
    logger.info(f"Using {backend.name} backend on {backend.device_name}")
    return backend

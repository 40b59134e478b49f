"""OpenCL backend (pyopencl): one context, one in-order queue, one device."""

from __future__ import annotations

import logging

import numpy as np
import pyopencl as cl

from pipeline_runtime.backend import Backend, DeviceBuffer, check_host_data
from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.errors import DeviceError, SetupError, UnknownKernelError
from pipeline_runtime.invocation import KernelInvocation

logger = logging.getLogger("pipeline_runtime.opencl")

_MF = cl.mem_flags


def _matches(wanted: str | None, actual: str) -> bool:
    return wanted is None or wanted.lower() in actual.lower()


def select_device(platform_name: str | None = None, device_name: str | None = None) -> cl.Device:
    """First device whose platform and device names contain the given substrings."""
    try:
        platforms = cl.get_platforms()
    except cl.Error as exc:
        raise SetupError(f"Could not list OpenCL platforms: {exc}") from exc
    if not platforms:
        raise SetupError("No OpenCL platforms found on this machine")

    for platform in platforms:
        if not _matches(platform_name, platform.name):
            continue
        try:
            devices = platform.get_devices()
        except cl.Error:
            logger.warning(f"Could not list devices of platform '{platform.name}'")
            continue
        for device in devices:
            if _matches(device_name, device.name):
                return device

    raise SetupError(
        "No OpenCL device matches the requested platform/device",
        {
            "platform": platform_name or "<any>",
            "device": device_name or "<any>",
            "available": ", ".join(p.name for p in platforms),
        },
    )


class OpenCLBuffer(DeviceBuffer):
    """cl.Buffer plus its element type; reads and writes block on the queue."""

    def __init__(self, cl_buffer: cl.Buffer, length: int, dtype: np.dtype, queue: cl.CommandQueue):
        self._buffer = cl_buffer
        self._length = length
        self._dtype = np.dtype(dtype)
        self._queue = queue

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def length(self) -> int:
        return self._length

    @property
    def native_handle(self) -> cl.Buffer:
        return self._buffer

    def to_numpy(self) -> np.ndarray:
        out = np.empty(self._length, dtype=self._dtype)
        if self._length:
            try:
                cl.enqueue_copy(self._queue, out, self._buffer).wait()
            except cl.Error as exc:
                raise DeviceError(f"Could not read device buffer: {exc}") from exc
        return out

    def write_from_numpy(self, data: np.ndarray) -> None:
        data = check_host_data(data, self)
        if not self._length:
            return
        try:
            cl.enqueue_copy(self._queue, self._buffer, data).wait()
        except cl.Error as exc:
            raise DeviceError(f"Could not write device buffer: {exc}") from exc


class OpenCLBackend(Backend):
    """Backend implementation on an OpenCL device."""

    def __init__(self, config: PipelineConfig | None = None, device: cl.Device | None = None):
        self._config = config or DEFAULT_CONFIG
        self._device = device or select_device(self._config.platform_name, self._config.device_name)
        try:
            self._context = cl.Context([self._device])
            self._queue = cl.CommandQueue(self._context, self._device)
        except cl.Error as exc:
            raise SetupError(f"Could not create the OpenCL queue: {exc}") from exc
        self._program: cl.Program | None = None
        self._kernels: dict[str, cl.Kernel] = {}

    @property
    def name(self) -> str:
        return "opencl"

    @property
    def device_name(self) -> str:
        return f"{self._device.name} ({self._device.platform.name})"

    @property
    def context(self) -> cl.Context:
        return self._context

    @property
    def queue(self) -> cl.CommandQueue:
        return self._queue

    def build_program(self, source: str) -> None:
        try:
            self._program = cl.Program(self._context, source).build()
        except cl.Error as exc:
            raise SetupError(f"Could not build the OpenCL program: {exc}") from exc
        self._kernels.clear()

    def _new_buffer(self, host: np.ndarray) -> OpenCLBuffer:
        # OpenCL cannot allocate 0-byte buffers; use a 1-byte placeholder
        try:
            if host.nbytes:
                cl_buffer = cl.Buffer(self._context, _MF.READ_WRITE | _MF.COPY_HOST_PTR, hostbuf=host)
            else:
                cl_buffer = cl.Buffer(self._context, _MF.READ_WRITE, size=1)
        except cl.Error as exc:
            raise DeviceError(f"Could not allocate buffer ({host.nbytes} bytes): {exc}") from exc
        return OpenCLBuffer(cl_buffer, host.size, host.dtype, self._queue)

    def allocate_buffer(self, data: np.ndarray) -> OpenCLBuffer:
        return self._new_buffer(np.ascontiguousarray(data).reshape(-1))

    def allocate_zeros(self, length: int, dtype: np.dtype) -> OpenCLBuffer:
        return self._new_buffer(np.zeros(length, dtype=dtype))

    def _kernel(self, name: str) -> cl.Kernel:
        if self._program is None:
            raise SetupError("No kernel program has been built")
        kernel = self._kernels.get(name)
        if kernel is None:
            try:
                kernel = cl.Kernel(self._program, name)
            except cl.Error as exc:
                raise UnknownKernelError(name, self.name) from exc
            self._kernels[name] = kernel
        return kernel

    def enqueue_kernel(self, invocation: KernelInvocation) -> None:
        kernel = self._kernel(invocation.kernel_name)
        try:
            kernel.set_args(*invocation.native_args())
            cl.enqueue_nd_range_kernel(
                self._queue, kernel, invocation.global_size, self._config.local_size
            ).wait()
        except (cl.Error, TypeError) as exc:
            raise DeviceError(
                f"Could not run kernel '{invocation.kernel_name}': {exc}",
                {"kernel": invocation.kernel_name, "arguments": len(invocation.args)},
            ) from exc

    def synchronize(self) -> None:
        self._queue.finish()

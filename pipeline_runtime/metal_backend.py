"""Metal GPU backend implementation (Apple, via pyobjc).

Buffers are bound with setBuffer at their argument index and scalars with
setBytes, so kernel parameters are declared as ``device T*`` and
``constant T&`` in argument order. The grid covers the frame with 16x16
threadgroups; kernels must bounds-check against the trailing width/height.
Metal has no double type: float buffers hold float64 bytes as uploaded.
"""

from __future__ import annotations

import numpy as np

from pipeline_runtime.backend import Backend, DeviceBuffer, check_host_data
from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.device import Device
from pipeline_runtime.errors import DeviceError, SetupError
from pipeline_runtime.invocation import BufferArg, KernelInvocation

# MTLResourceStorageModeShared: CPU and GPU can both access the buffer without
# explicit copies, required for image upload and output readback.
_STORAGE_MODE_SHARED = 0
_COMMAND_BUFFER_STATUS_ERROR = 5
_THREADGROUP_2D = 16


class MetalBuffer(DeviceBuffer):
    """Shared-storage MTLBuffer with numpy conversion."""

    def __init__(self, mtl_buffer, length: int, dtype: np.dtype):
        self._buffer = mtl_buffer
        self._length = length
        self._dtype = np.dtype(dtype)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def length(self) -> int:
        return self._length

    @property
    def native_handle(self):
        return self._buffer

    def to_numpy(self) -> np.ndarray:
        nbytes = self.size_bytes
        if nbytes == 0:
            return np.zeros(0, dtype=self._dtype)
        mv = self._buffer.contents().as_buffer(nbytes)
        return np.frombuffer(mv, dtype=self._dtype).copy()

    def write_from_numpy(self, data: np.ndarray) -> None:
        raw = check_host_data(data, self).tobytes()
        if not raw:
            return
        buf = self._buffer.contents().as_buffer(len(raw))
        buf[:] = raw


class MetalBackend(Backend):
    """Backend implementation using Apple Metal GPU."""

    def __init__(self, config: PipelineConfig | None = None):
        self._config = config or DEFAULT_CONFIG
        self._device = Device()
        self._library = None

    @property
    def name(self) -> str:
        return "metal"

    @property
    def device_name(self) -> str:
        return self._device.name

    @property
    def device(self) -> Device:
        return self._device

    def build_program(self, source: str) -> None:
        self._library = self._device.compile_source(source)

    def _new_buffer(self, host: np.ndarray) -> MetalBuffer:
        raw = host.tobytes()
        # Metal cannot allocate 0-byte buffers; use 1-byte placeholder
        alloc = raw or b"\x00"
        mtl_buffer = self._device.mtl_device.newBufferWithBytes_length_options_(
            alloc, len(alloc), _STORAGE_MODE_SHARED
        )
        if mtl_buffer is None:
            raise DeviceError(f"Failed to allocate Metal buffer ({len(alloc)} bytes)")
        return MetalBuffer(mtl_buffer, host.size, host.dtype)

    def allocate_buffer(self, data: np.ndarray) -> MetalBuffer:
        return self._new_buffer(np.ascontiguousarray(data).reshape(-1))

    def allocate_zeros(self, length: int, dtype: np.dtype) -> MetalBuffer:
        return self._new_buffer(np.zeros(length, dtype=dtype))

    def enqueue_kernel(self, invocation: KernelInvocation) -> None:
        if self._library is None:
            raise SetupError("No kernel program has been built")
        pipeline = self._device.get_pipeline(self._library, invocation.kernel_name)

        cmd_buf = self._device.new_command_buffer()
        encoder = cmd_buf.computeCommandEncoder()
        encoder.setComputePipelineState_(pipeline)
        for idx, arg in enumerate(invocation.args):
            if isinstance(arg, BufferArg):
                encoder.setBuffer_offset_atIndex_(arg.buffer.native_handle, 0, idx)
            else:
                raw = arg.value.tobytes()
                encoder.setBytes_length_atIndex_(raw, len(raw), idx)

        width, height = invocation.global_size
        tpg_x, tpg_y = self._config.local_size or (min(_THREADGROUP_2D, width), min(_THREADGROUP_2D, height))
        groups_x = (width + tpg_x - 1) // tpg_x
        groups_y = (height + tpg_y - 1) // tpg_y
        encoder.dispatchThreadgroups_threadsPerThreadgroup_((groups_x, groups_y, 1), (tpg_x, tpg_y, 1))
        encoder.endEncoding()
        cmd_buf.commit()
        cmd_buf.waitUntilCompleted()

        if cmd_buf.status() == _COMMAND_BUFFER_STATUS_ERROR:
            raise DeviceError(
                f"Kernel '{invocation.kernel_name}' failed: {cmd_buf.error()}",
                {"kernel": invocation.kernel_name, "backend": self.name},
            )

    def synchronize(self):
        pass  # Metal command buffers are synchronous via waitUntilCompleted

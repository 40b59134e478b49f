"""Tests for the host (numpy) backend."""

import numpy as np
import numpy.testing as npt
import pytest

from pipeline_runtime.errors import DeviceError, SetupError, UnknownKernelError
from pipeline_runtime.host_backend import HostBackend
from pipeline_runtime.invocation import BufferArg, KernelInvocation, ScalarArg


class TestHostBuffer:
    def test_allocate_copies(self, backend):
        data = np.array([1, 2, 3], dtype=np.int64)
        buf = backend.allocate_buffer(data)
        data[0] = 99
        npt.assert_array_equal(buf.to_numpy(), [1, 2, 3])
        assert buf.size_bytes == 24

    def test_zeros(self, backend):
        buf = backend.allocate_zeros(6, np.dtype(np.uint8))
        npt.assert_array_equal(buf.to_numpy(), np.zeros(6, dtype=np.uint8))

    def test_write_checks_dtype_and_length(self, backend):
        buf = backend.allocate_zeros(4, np.dtype(np.float64))
        with pytest.raises(DeviceError):
            buf.write_from_numpy(np.zeros(4, dtype=np.float32))
        with pytest.raises(DeviceError):
            buf.write_from_numpy(np.zeros(5, dtype=np.float64))


class TestHostKernels:
    def test_enqueue(self, backend):
        src = backend.allocate_buffer(np.arange(6, dtype=np.uint8))
        dst = backend.allocate_zeros(6, np.dtype(np.uint8))
        invocation = KernelInvocation(
            "invert",
            [BufferArg("src", src), BufferArg("dst", dst), ScalarArg(np.uint32(2)), ScalarArg(np.uint32(1))],
            (2, 1),
        )
        backend.enqueue_kernel(invocation)
        npt.assert_array_equal(dst.to_numpy(), 255 - np.arange(6, dtype=np.uint8))
        assert backend.last_invocation is invocation
        assert backend.enqueue_count == 1

    def test_unknown_kernel(self, backend):
        with pytest.raises(UnknownKernelError):
            backend.enqueue_kernel(KernelInvocation("missing"))
        with pytest.raises(UnknownKernelError):
            backend.enqueue_kernel(KernelInvocation("np"))

    def test_bad_program(self):
        with pytest.raises(SetupError):
            HostBackend().build_program("def broken(:\n")

    def test_enqueue_before_build(self):
        with pytest.raises(SetupError):
            HostBackend().enqueue_kernel(KernelInvocation("copy"))

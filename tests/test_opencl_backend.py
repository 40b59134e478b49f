"""Integration tests for the OpenCL backend.

These tests REQUIRE an OpenCL platform (e.g. pocl on CPU).
Skipped automatically if pyopencl or a device is not available.
"""

import os

import numpy as np
import numpy.testing as npt
import pytest

try:
    import pyopencl as cl

    from pipeline_runtime.opencl_backend import OpenCLBackend

    HAS_OPENCL = bool(cl.get_platforms())
except Exception:
    HAS_OPENCL = False

from pipeline_runtime.config import PipelineConfig
from pipeline_runtime.errors import SetupError, UnknownBufferError, UnknownKernelError
from pipeline_runtime.executor import PipelineExecutor
from tests.conftest import make_image

pytestmark = pytest.mark.skipif(not HAS_OPENCL, reason="OpenCL not available")

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "examples", "pipelines")

KERNELS = """
__kernel void copy(__global const uchar* src, __global uchar* dst, uint width, uint height)
{
    uint x = get_global_id(0);
    uint y = get_global_id(1);
    if (x >= width || y >= height) return;
    size_t i = ((size_t)y * width + x) * 3;
    dst[i] = src[i];
    dst[i + 1] = src[i + 1];
    dst[i + 2] = src[i + 2];
}

__kernel void add_offset(__global long* values, long offset, uint width, uint height)
{
    if (get_global_id(0) == 0 && get_global_id(1) == 0) {
        values[0] += offset;
    }
}

__kernel void paint_tile(__global uchar* tile, uint tw, uint th, uchar value,
                         uint width, uint height)
{
    uint x = get_global_id(0);
    uint y = get_global_id(1);
    if (x >= tw || y >= th) return;
    size_t i = ((size_t)y * tw + x) * 3;
    tile[i] = value;
    tile[i + 1] = value;
    tile[i + 2] = value;
}
"""

COPY_SCRIPT = """
def init():
    ocl.create_int_buffer("counter", [0])
    ocl.create_image("tile", 2, 2)


def run():
    ocl.call_kernel("add_offset", [counter, 5])
    ocl.call_kernel("paint_tile", [tile, np_uint8(9)])
    ocl.call_kernel("copy", [input, output])
"""


@pytest.fixture
def config():
    return PipelineConfig(backend="opencl")


def _executor(config, script=COPY_SCRIPT, size=(8, 6)):
    executor = PipelineExecutor(config)
    executor.init_from_source(KERNELS, "import numpy\nnp_uint8 = numpy.uint8\n" + script, size)
    return executor


class TestOpenCLBackend:
    def test_buffer_roundtrip(self, config):
        backend = OpenCLBackend(config)
        data = np.array([1.5, -2.0, 3.25], dtype=np.float64)
        buf = backend.allocate_buffer(data)
        npt.assert_array_equal(buf.to_numpy(), data)
        buf.write_from_numpy(data * 2)
        npt.assert_array_equal(buf.to_numpy(), data * 2)

    def test_empty_buffer(self, config):
        buf = OpenCLBackend(config).allocate_buffer(np.zeros(0, dtype=np.int64))
        assert buf.length == 0
        assert buf.to_numpy().size == 0

    def test_build_failure(self, config):
        with pytest.raises(SetupError):
            OpenCLBackend(config).build_program("__kernel void broken(")

    def test_no_matching_device(self):
        with pytest.raises(SetupError):
            OpenCLBackend(PipelineConfig(platform_name="no-such-platform-anywhere"))


class TestOpenCLPipeline:
    def test_round_trip_identity(self, config):
        executor = _executor(config)
        image = make_image(8, 6)
        npt.assert_array_equal(executor.compute(image), image)

    def test_scalar_and_fixed_image_arguments(self, config):
        executor = _executor(config)
        for seed in range(3):
            executor.compute(make_image(8, 6, seed))
        npt.assert_array_equal(executor.registry.lookup("counter").buffer.to_numpy(), [15])
        npt.assert_array_equal(executor.registry.lookup("tile").buffer.to_numpy(), np.full(12, 9, np.uint8))

    def test_resize(self, config):
        executor = _executor(config)
        image = make_image(5, 9)
        result = executor.compute(image)
        assert result.shape == (9, 5, 3)
        npt.assert_array_equal(result, image)

    def test_unknown_kernel(self, config):
        executor = _executor(config, 'def init():\n    pass\n\ndef run():\n    ocl.call_kernel("nope", [])\n')
        with pytest.raises(UnknownKernelError):
            executor.compute(make_image(8, 6))

    def test_unknown_buffer(self, config):
        script = (
            "from pipeline_runtime.references import BufferRef\n"
            'def init():\n    pass\n\ndef run():\n    ocl.call_kernel("add_offset", [BufferRef("gone", 1), 1])\n'
        )
        executor = _executor(config, script)
        with pytest.raises(UnknownBufferError, match="gone"):
            executor.compute(make_image(8, 6))

    def test_example_pipeline(self, config):
        executor = PipelineExecutor(config)
        executor.init(
            os.path.join(EXAMPLES_DIR, "grayscale.cl"),
            os.path.join(EXAMPLES_DIR, "grayscale.py"),
            (6, 4),
        )
        result = executor.compute(make_image(6, 4))
        assert result.shape == (4, 6, 3)
        assert (result[..., 0] == result[..., 1]).all()
        assert (result[..., 1] == result[..., 2]).all()

    def test_example_pipeline_brightens(self, config):
        executor = PipelineExecutor(config)
        executor.init(
            os.path.join(EXAMPLES_DIR, "grayscale.cl"),
            os.path.join(EXAMPLES_DIR, "grayscale.py"),
            (6, 4),
        )
        result = executor.compute(np.zeros((4, 6, 3), dtype=np.uint8))
        npt.assert_array_equal(result, np.full((4, 6, 3), 16, np.uint8))

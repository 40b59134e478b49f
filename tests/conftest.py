"""Shared fixtures and helpers for pipeline runtime tests.

Most tests run on the host backend, whose kernels are plain numpy functions,
so the whole bridge is exercised without a GPU.
"""

import numpy as np
import pytest

from pipeline_runtime.executor import PipelineExecutor
from pipeline_runtime.host_backend import HostBackend
from pipeline_runtime.registry import BufferRegistry

HOST_KERNELS = """
CALLS = []


def copy(src, dst, width, height):
    dst[:] = src


def invert(src, dst, width, height):
    dst[:] = 255 - src


def record(*args):
    CALLS.append(args)


def fill(dst, value, width, height):
    dst[:] = value


def scale(buf, factor, width, height):
    buf *= factor
"""

COPY_SCRIPT = """
def init():
    pass


def run():
    ocl.call_kernel("copy", [input, output])
"""


def make_image(width, height, seed=0):
    """Random (height, width, 3) uint8 RGB image."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


@pytest.fixture
def backend():
    """Host backend with the test kernels built."""
    b = HostBackend()
    b.build_program(HOST_KERNELS)
    return b


@pytest.fixture
def registry(backend):
    return BufferRegistry(backend, (4, 3))


@pytest.fixture
def make_executor(backend):
    """Factory: initialized executor on the host backend for a script source."""

    def _make(script, frame_size=(4, 3), kernels=HOST_KERNELS):
        executor = PipelineExecutor(backend=backend)
        executor.init_from_source(kernels, script, frame_size)
        return executor

    return _make

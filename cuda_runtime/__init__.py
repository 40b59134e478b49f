"""CUDA runtime: CuPy-based GPU execution backend."""

from cuda_runtime.cuda_backend import CUDABackend as CUDABackend
from cuda_runtime.cuda_backend import CUDABuffer as CUDABuffer

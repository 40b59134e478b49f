from pipeline_runtime.backend import Backend, DeviceBuffer, create_backend
from pipeline_runtime.buffers import DynamicImage, FixedImage, FloatBuffer, IntBuffer
from pipeline_runtime.config import PipelineConfig
from pipeline_runtime.errors import (
    BufferKindError,
    DeviceError,
    ErrorKind,
    PhaseError,
    PipelineError,
    ReservedNameError,
    ResolutionError,
    ScriptError,
    SetupError,
    ShapeMismatchError,
    UnknownBufferError,
    UnknownKernelError,
    UnsupportedArgumentError,
)
from pipeline_runtime.executor import ExecutorState, PipelineExecutor
from pipeline_runtime.host_backend import HostBackend
from pipeline_runtime.invocation import BufferArg, KernelInvocation, ScalarArg
from pipeline_runtime.log import configure_logging
from pipeline_runtime.profiler import ProfileResult, profile
from pipeline_runtime.references import BufferRef, ImageRef
from pipeline_runtime.registry import BufferRegistry
from pipeline_runtime.resolver import KernelArgumentResolver

__all__ = [
    "Backend",
    "DeviceBuffer",
    "create_backend",
    "IntBuffer",
    "FloatBuffer",
    "DynamicImage",
    "FixedImage",
    "PipelineConfig",
    "ErrorKind",
    "PipelineError",
    "SetupError",
    "ScriptError",
    "PhaseError",
    "ReservedNameError",
    "ResolutionError",
    "UnknownBufferError",
    "BufferKindError",
    "UnsupportedArgumentError",
    "UnknownKernelError",
    "DeviceError",
    "ShapeMismatchError",
    "PipelineExecutor",
    "ExecutorState",
    "HostBackend",
    "KernelInvocation",
    "ScalarArg",
    "BufferArg",
    "configure_logging",
    "ProfileResult",
    "profile",
    "BufferRef",
    "ImageRef",
    "BufferRegistry",
    "KernelArgumentResolver",
]

try:
    from pipeline_runtime.opencl_backend import OpenCLBackend

    __all__ += ["OpenCLBackend"]
except ImportError:
    pass

try:
    from pipeline_runtime.metal_backend import MetalBackend

    __all__ += ["MetalBackend"]
except ImportError:
    pass

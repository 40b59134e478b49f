"""Metal device management for the Metal backend."""

from __future__ import annotations

import Metal  # pyobjc-framework-Metal

from pipeline_runtime.errors import SetupError, UnknownKernelError


class Device:
    """Wraps Metal device, command queue, and shader library compilation."""

    def __init__(self):
        self._device = Metal.MTLCreateSystemDefaultDevice()
        if self._device is None:
            raise SetupError("No Metal device found")
        self._command_queue = self._device.newCommandQueue()
        self._pipeline_cache: dict[str, Metal.MTLComputePipelineState] = {}

    @property
    def name(self) -> str:
        return self._device.name()

    @property
    def mtl_device(self):
        return self._device

    def compile_source(self, source: str) -> Metal.MTLLibrary:
        """Compile Metal shading language source into a library."""
        library, error = self._device.newLibraryWithSource_options_error_(source, None, None)
        if library is None:
            raise SetupError(f"Metal program compilation failed: {error}")
        self._pipeline_cache.clear()
        return library

    def get_pipeline(self, library: Metal.MTLLibrary, function_name: str):
        """Get a compute pipeline for a kernel function of library."""
        cached = self._pipeline_cache.get(function_name)
        if cached is not None:
            return cached

        function = library.newFunctionWithName_(function_name)
        if function is None:
            raise UnknownKernelError(function_name, "metal")

        pipeline, error = self._device.newComputePipelineStateWithFunction_error_(function, None)
        if pipeline is None:
            raise SetupError(f"Pipeline creation failed for '{function_name}': {error}")

        self._pipeline_cache[function_name] = pipeline
        return pipeline

    def new_command_buffer(self):
        return self._command_queue.commandBuffer()

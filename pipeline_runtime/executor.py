"""PipelineExecutor: runs a scripted kernel pipeline over RGB frames.

Lifecycle:
    UNINITIALIZED --init()--> INITIALIZED --compute()--> RUNNING --> INITIALIZED ...

init() happens once per executor: it builds the kernel program, allocates the
reserved "input"/"output" images, compiles the pipeline script and runs its
init(). compute() is then called once per frame, sequentially, reusing every
buffer allocated during init. Only dynamic images are reallocated, and only
when the frame size changes.

Every device operation is synchronous, so nothing outlives a compute() call.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

import numpy as np

from pipeline_runtime.backend import Backend, create_backend
from pipeline_runtime.config import DEFAULT_CONFIG, PipelineConfig
from pipeline_runtime.errors import PhaseError, SetupError
from pipeline_runtime.log import configure_logging
from pipeline_runtime.registry import BufferRegistry
from pipeline_runtime.resolver import DIM_DTYPE
from pipeline_runtime.script import INIT, RUN, PipelineScript, ScriptContext
from pipeline_runtime.transfer import download_image, image_size, upload_image

logger = logging.getLogger("pipeline_runtime.executor")


class ExecutorState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"


class PipelineExecutor:
    """Owns the backend, the compiled script and the buffer registry.

    Args:
        config: Backend selection; ignored when backend is given. A verbose
            config also configures package logging at INFO.
        backend: Already constructed backend (tests, custom devices).
    """

    def __init__(self, config: PipelineConfig | None = None, backend: Backend | None = None):
        self._config = config or DEFAULT_CONFIG
        if self._config.verbose:
            configure_logging(verbose=True)
        self._backend = backend
        self._script: PipelineScript | None = None
        self._registry: BufferRegistry | None = None
        self._state = ExecutorState.UNINITIALIZED

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def backend(self) -> Backend | None:
        return self._backend

    @property
    def registry(self) -> BufferRegistry:
        if self._registry is None:
            raise PhaseError("The executor has not been initialized")
        return self._registry

    @property
    def frame_size(self) -> tuple[int, int]:
        return self.registry.frame_size

    def init(
        self,
        kernel_path: str | os.PathLike,
        script_path: str | os.PathLike,
        frame_size: tuple[int, int],
    ) -> None:
        """Initialize from a kernel source file and a pipeline script file."""
        logger.info("Reading kernel source")
        try:
            with open(kernel_path) as f:
                kernel_source = f.read()
        except OSError as exc:
            raise SetupError(f"Could not read kernel source {kernel_path}: {exc}") from exc

        script = PipelineScript.from_file(script_path)
        self._initialize(kernel_source, script, frame_size)

    def init_from_source(
        self,
        kernel_source: str,
        script_source: str,
        frame_size: tuple[int, int],
        script_name: str = "<pipeline>",
    ) -> None:
        """Initialize from in-memory kernel and script sources."""
        script = PipelineScript(script_source, script_name)
        self._initialize(kernel_source, script, frame_size)

    def _initialize(self, kernel_source: str, script: PipelineScript, frame_size: tuple[int, int]) -> None:
        if self._state is not ExecutorState.UNINITIALIZED:
            raise PhaseError("init() can only run once per executor")

        logger.info("Initializing compute environment")
        if self._backend is None:
            logger.info("Creating queue")
            self._backend = create_backend(self._config)
        logger.info("Building kernel program")
        self._backend.build_program(kernel_source)

        logger.info("Creating io buffers")
        registry = BufferRegistry(self._backend, frame_size)

        logger.info(f"Running initializing code of {script.filename}")
        script.call(INIT, self._init_scope(registry))
        self._backend.synchronize()

        self._registry = registry
        self._script = script
        self._state = ExecutorState.INITIALIZED
        logger.info(f"Finished initialization ({len(registry)} buffers)")

    def compute(self, image: np.ndarray) -> np.ndarray:
        """Run the pipeline on one (height, width, 3) uint8 image and return the output image."""
        if self._state is ExecutorState.UNINITIALIZED:
            raise PhaseError("compute() called before init()")
        if self._state is ExecutorState.RUNNING:
            raise PhaseError("compute() called while a frame is already running")

        registry = self._registry
        self._state = ExecutorState.RUNNING
        try:
            registry.set_frame_size(image_size(image))
            upload_image(registry, image)
            self._script.call(RUN, self._run_scope(registry))
            self._backend.synchronize()
            return download_image(registry)
        finally:
            self._state = ExecutorState.INITIALIZED

    def _frame_constants(self, registry: BufferRegistry) -> dict:
        return {
            "IMG_WIDTH": DIM_DTYPE(registry.frame_width),
            "IMG_HEIGHT": DIM_DTYPE(registry.frame_height),
        }

    def _init_scope(self, registry: BufferRegistry) -> dict:
        scope = {"ocl": ScriptContext(registry, self._backend, INIT)}
        scope.update(self._frame_constants(registry))
        return scope

    def _run_scope(self, registry: BufferRegistry) -> dict:
        scope = dict(registry.references())
        scope["ocl"] = ScriptContext(registry, self._backend, RUN)
        scope.update(self._frame_constants(registry))
        return scope

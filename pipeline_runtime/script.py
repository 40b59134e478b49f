"""Pipeline scripts and the ``ocl`` object they talk to.

A pipeline script is Python source defining two functions without parameters:

    def init():
        ocl.create_float_buffer("weights", [0.25, 0.5, 0.25])

    def run():
        ocl.call_kernel("blur", [input, weights, output])

The source is compiled once. Each phase call executes the module body in a
fresh namespace pre-filled with the phase scope, then calls the entry point.
Context therefore reaches the script through globals, never through
arguments:

    init:  ocl (creation primitives), IMG_WIDTH, IMG_HEIGHT
    run:   ocl (call_kernel), IMG_WIDTH, IMG_HEIGHT, one reference per buffer

IMG_WIDTH / IMG_HEIGHT are uint32 and are meant to be read, not rebound.

Scalar arguments keep their numpy width; a plain Python int binds as a 64-bit
``long`` and a float as ``double``, so narrower kernel parameters need a numpy
scalar such as ``np.int32(16)``.
"""

from __future__ import annotations

import builtins
import inspect
import logging
import os

from pipeline_runtime.backend import Backend
from pipeline_runtime.errors import PhaseError, PipelineError, ScriptError, SetupError
from pipeline_runtime.references import BufferRef, ImageRef
from pipeline_runtime.registry import BufferRegistry
from pipeline_runtime.resolver import KernelArgumentResolver

logger = logging.getLogger("pipeline_runtime.script")

INIT = "init"
RUN = "run"
ENTRY_POINTS = (INIT, RUN)


class ScriptContext:
    """Capability object bound to ``ocl`` in the script scope.

    It is tied to one phase: creation primitives only work during init,
    call_kernel only during run.
    """

    def __init__(self, registry: BufferRegistry, backend: Backend, phase: str):
        self._registry = registry
        self._backend = backend
        self._resolver = KernelArgumentResolver(registry)
        self._phase = phase

    @property
    def phase(self) -> str:
        return self._phase

    def _require(self, phase: str, primitive: str) -> None:
        if self._phase != phase:
            raise PhaseError(
                f"{primitive}() can only be called during {phase}(), not {self._phase}()",
                phase=self._phase,
            )

    def create_int_buffer(self, name: str, values) -> BufferRef:
        self._require(INIT, "create_int_buffer")
        return self._registry.create_int_buffer(name, values)

    def create_float_buffer(self, name: str, values) -> BufferRef:
        self._require(INIT, "create_float_buffer")
        return self._registry.create_float_buffer(name, values)

    def create_dynimage(self, name: str) -> ImageRef:
        self._require(INIT, "create_dynimage")
        return self._registry.create_dynamic_image(name)

    def create_image(self, name: str, width: int, height: int) -> ImageRef:
        self._require(INIT, "create_image")
        return self._registry.create_fixed_image(name, width, height)

    def call_kernel(self, name: str, args=()) -> None:
        self._require(RUN, "call_kernel")
        if not isinstance(name, str) or not name:
            raise ScriptError(f"Kernel names must be non-empty strings, got {name!r}", phase=self._phase)
        invocation = self._resolver.resolve(name, args)
        logger.debug(f"Enqueue {name} with {len(invocation.args)} arguments over {invocation.global_size}")
        self._backend.enqueue_kernel(invocation)


class PipelineScript:
    """A compiled pipeline script."""

    def __init__(self, source: str, filename: str = "<pipeline>"):
        self._filename = filename
        try:
            self._code = compile(source, filename, "exec")
        except (SyntaxError, ValueError) as exc:
            raise SetupError(f"Could not compile pipeline script {filename}: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> PipelineScript:
        try:
            with open(path) as f:
                source = f.read()
        except OSError as exc:
            raise SetupError(f"Could not read pipeline script {path}: {exc}") from exc
        return cls(source, os.fspath(path))

    @property
    def filename(self) -> str:
        return self._filename

    def check_entry_points(self, namespace: dict) -> None:
        """Fail if init() or run() is missing from namespace or takes arguments."""
        for entry in ENTRY_POINTS:
            fn = namespace.get(entry)
            if not callable(fn):
                raise SetupError(f"Pipeline script {self._filename} does not define {entry}()")
            try:
                params = inspect.signature(fn).parameters.values()
            except (TypeError, ValueError):
                continue
            required = [
                p.name for p in params
                if p.default is inspect.Parameter.empty
                and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
            ]
            if required:
                raise SetupError(
                    f"{entry}() in {self._filename} must not take parameters",
                    {"parameters": ", ".join(required)},
                )

    def call(self, entry: str, scope: dict) -> None:
        """Run the module body with scope as globals, then call entry()."""
        namespace = self._load(scope, entry)
        self.check_entry_points(namespace)
        self._guarded(entry, namespace[entry])

    def _load(self, scope: dict, phase: str) -> dict:
        namespace = {"__name__": "__pipeline__", "__file__": self._filename, "__builtins__": builtins}
        namespace.update(scope)
        self._guarded(phase, exec, self._code, namespace)
        return namespace

    @staticmethod
    def _guarded(phase: str, fn, *args) -> None:
        try:
            fn(*args)
        except PipelineError:
            raise
        except Exception as exc:
            raise ScriptError(
                f"Unhandled {type(exc).__name__} in pipeline {phase}(): {exc}", phase=phase
            ) from exc

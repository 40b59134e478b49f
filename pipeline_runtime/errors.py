"""Error hierarchy for the pipeline runtime.

Every failure the runtime reports is a PipelineError carrying a fixed ErrorKind,
so callers (batch drivers in particular) can tell setup failures apart from
per-frame and resolution failures without parsing messages.

Kinds:
    SETUP:      unreadable sources, backend/queue/program build, script compile
    SCRIPT:     unhandled error inside init()/run(), phase or reserved-name violations
    RESOLUTION: unknown buffer/kernel names, kind mismatches, unsupported arguments
    DEVICE:     allocation, enqueue, read or write failures
    SHAPE:      host image / output buffer size inconsistent with the frame
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    SETUP = "setup"
    SCRIPT = "script"
    RESOLUTION = "resolution"
    DEVICE = "device"
    SHAPE = "shape"


class PipelineError(Exception):
    """Base class for all pipeline runtime errors.

    Attributes:
        message: Human-readable error message.
        context: Extra key/value pairs shown under the message.
    """

    kind: ErrorKind = ErrorKind.SETUP

    def __init__(self, message: str, context: dict | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]
        if self.context:
            lines.append("")
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {value}")
        return "\n".join(lines)


class SetupError(PipelineError):
    kind = ErrorKind.SETUP


class ScriptError(PipelineError):
    """Error raised by, or on behalf of, the pipeline script."""

    kind = ErrorKind.SCRIPT

    def __init__(self, message: str, phase: str | None = None, context: dict | None = None):
        self.phase = phase
        context = dict(context or {})
        if phase is not None:
            context.setdefault("phase", phase)
        super().__init__(message, context)


class PhaseError(ScriptError):
    """A primitive or executor operation was used outside the phase it belongs to."""


class ReservedNameError(ScriptError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cannot create a buffer named '{name}': the name is reserved for the pipeline image",
            phase="init",
        )


class ResolutionError(PipelineError):
    kind = ErrorKind.RESOLUTION


class UnknownBufferError(ResolutionError):
    def __init__(self, name: str, expected: str = "buffer"):
        self.name = name
        super().__init__(f"There is no {expected} named '{name}'", {"name": name})


class BufferKindError(ResolutionError):
    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Buffer '{name}' is a {actual}, expected {expected}",
            {"name": name, "expected": expected, "actual": actual},
        )


class UnsupportedArgumentError(ResolutionError):
    def __init__(self, kernel_name: str, position: int, value: object, reason: str | None = None):
        self.kernel_name = kernel_name
        self.position = position
        message = (
            f"Argument {position} of kernel '{kernel_name}' has unsupported type "
            f"{type(value).__name__}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"kernel": kernel_name, "position": position})


class UnknownKernelError(ResolutionError):
    def __init__(self, kernel_name: str, backend: str):
        self.kernel_name = kernel_name
        super().__init__(
            f"There is no kernel named '{kernel_name}' in the program",
            {"kernel": kernel_name, "backend": backend},
        )


class DeviceError(PipelineError):
    kind = ErrorKind.DEVICE


class ShapeMismatchError(PipelineError):
    kind = ErrorKind.SHAPE

    def __init__(self, message: str, expected: object = None, actual: object = None):
        context = {}
        if expected is not None:
            context["expected"] = expected
        if actual is not None:
            context["actual"] = actual
        super().__init__(message, context)

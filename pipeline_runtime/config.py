"""Runtime configuration: backend selection and device choice."""

from __future__ import annotations

import os
from dataclasses import dataclass

from pipeline_runtime.errors import SetupError

BACKEND_NAMES = ("opencl", "cuda", "metal", "host")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class PipelineConfig:
    """Which backend to run on and which device it should bind.

    platform_name / device_name are matched case-insensitively as substrings
    (OpenCL); device_index selects the CUDA device. When nothing is given the
    first platform and its first device are used.
    """
    backend: str = "opencl"
    platform_name: str | None = None
    device_name: str | None = None
    device_index: int = 0
    local_size: tuple[int, int] | None = None
    verbose: bool = False

    def __post_init__(self):
        if self.backend not in BACKEND_NAMES:
            raise SetupError(
                f"Unknown backend '{self.backend}'",
                {"available": ", ".join(BACKEND_NAMES)},
            )
        if self.device_index < 0:
            raise SetupError(f"device_index must be >= 0, got {self.device_index}")
        if self.local_size is not None:
            if len(self.local_size) != 2 or any(s <= 0 for s in self.local_size):
                raise SetupError(f"local_size must be two positive ints, got {self.local_size}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> PipelineConfig:
        """Build a config from PIPELINE_* environment variables."""
        env = os.environ if environ is None else environ

        device_index = 0
        raw_index = env.get("PIPELINE_DEVICE_INDEX")
        if raw_index is not None:
            try:
                device_index = int(raw_index)
            except ValueError as exc:
                raise SetupError(f"PIPELINE_DEVICE_INDEX must be an integer, got '{raw_index}'") from exc

        local_size = None
        raw_local = env.get("PIPELINE_LOCAL_SIZE")
        if raw_local:
            try:
                x, y = (int(part) for part in raw_local.lower().split("x"))
            except ValueError as exc:
                raise SetupError(f"PIPELINE_LOCAL_SIZE must look like '16x16', got '{raw_local}'") from exc
            local_size = (x, y)

        raw_verbose = env.get("PIPELINE_VERBOSE", "").strip().lower()
        if raw_verbose in _TRUE_VALUES:
            verbose = True
        elif raw_verbose in _FALSE_VALUES:
            verbose = False
        else:
            raise SetupError(f"PIPELINE_VERBOSE must be a boolean, got '{raw_verbose}'")

        return cls(
            backend=env.get("PIPELINE_BACKEND", "opencl"),
            platform_name=env.get("PIPELINE_PLATFORM") or None,
            device_name=env.get("PIPELINE_DEVICE") or None,
            device_index=device_index,
            local_size=local_size,
            verbose=verbose,
        )


DEFAULT_CONFIG = PipelineConfig()

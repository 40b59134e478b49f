"""Profiler: measure per-frame pipeline time."""

from __future__ import annotations

import time
from dataclasses import dataclass

import numpy as np

from pipeline_runtime.executor import PipelineExecutor


@dataclass
class ProfileResult:
    """Mean time of one compute() call over the measured iterations."""
    total_ms: float
    iterations: int


def profile(
    executor: PipelineExecutor,
    image: np.ndarray,
    warmup: int = 3,
    iterations: int = 10,
) -> ProfileResult:
    """Profile an initialized executor on one frame.

    Runs warmup frames first, so a frame-size change (and its reallocation)
    is not part of the measurement.
    """
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")

    for _ in range(warmup):
        executor.compute(image)

    start = time.perf_counter()
    for _ in range(iterations):
        executor.compute(image)
    end = time.perf_counter()

    return ProfileResult(
        total_ms=(end - start) / iterations * 1000,
        iterations=iterations,
    )

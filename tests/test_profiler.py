"""Tests for the frame profiler."""

import pytest

from pipeline_runtime.profiler import ProfileResult, profile
from tests.conftest import COPY_SCRIPT, make_image


class TestProfile:
    def test_profile_counts_frames(self, make_executor, backend):
        executor = make_executor(COPY_SCRIPT)
        result = profile(executor, make_image(4, 3), warmup=2, iterations=5)
        assert isinstance(result, ProfileResult)
        assert result.iterations == 5
        assert result.total_ms >= 0
        assert backend.enqueue_count == 7

    def test_rejects_zero_iterations(self, make_executor):
        with pytest.raises(ValueError):
            profile(make_executor(COPY_SCRIPT), make_image(4, 3), iterations=0)

"""Tests for configuration, logging setup and backend creation."""

import io
import logging

import pytest

from pipeline_runtime.backend import create_backend
from pipeline_runtime.config import PipelineConfig
from pipeline_runtime.errors import ErrorKind, SetupError
from pipeline_runtime.executor import PipelineExecutor
from pipeline_runtime.host_backend import HostBackend
from pipeline_runtime.log import LOGGER_NAME, configure_logging


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.backend == "opencl"
        assert config.platform_name is None
        assert config.local_size is None

    def test_unknown_backend(self):
        with pytest.raises(SetupError) as excinfo:
            PipelineConfig(backend="vulkan")
        assert excinfo.value.kind is ErrorKind.SETUP

    @pytest.mark.parametrize("local_size", [(0, 16), (16,), (16, 16, 1)])
    def test_bad_local_size(self, local_size):
        with pytest.raises(SetupError):
            PipelineConfig(local_size=local_size)

    def test_from_env(self):
        config = PipelineConfig.from_env({
            "PIPELINE_BACKEND": "host",
            "PIPELINE_PLATFORM": "Portable",
            "PIPELINE_DEVICE": "cpu",
            "PIPELINE_DEVICE_INDEX": "1",
            "PIPELINE_LOCAL_SIZE": "8x4",
            "PIPELINE_VERBOSE": "yes",
        })
        assert config == PipelineConfig(
            backend="host",
            platform_name="Portable",
            device_name="cpu",
            device_index=1,
            local_size=(8, 4),
            verbose=True,
        )

    def test_from_empty_env(self):
        assert PipelineConfig.from_env({}) == PipelineConfig()

    @pytest.mark.parametrize(
        "env",
        [
            {"PIPELINE_DEVICE_INDEX": "first"},
            {"PIPELINE_LOCAL_SIZE": "16"},
            {"PIPELINE_VERBOSE": "maybe"},
            {"PIPELINE_BACKEND": "directx"},
        ],
    )
    def test_from_env_invalid(self, env):
        with pytest.raises(SetupError):
            PipelineConfig.from_env(env)


class TestCreateBackend:
    def test_host(self):
        backend = create_backend(PipelineConfig(backend="host"))
        assert isinstance(backend, HostBackend)
        assert backend.name == "host"


class TestLogging:
    def test_verbose_logs_info(self):
        stream = io.StringIO()
        configure_logging(verbose=True, stream=stream)
        logging.getLogger(f"{LOGGER_NAME}.executor").info("Creating queue")
        assert "[INFO] [pipeline_runtime.executor] Creating queue" in stream.getvalue()

    def test_quiet_hides_info(self):
        stream = io.StringIO()
        configure_logging(verbose=False, stream=stream)
        logging.getLogger(f"{LOGGER_NAME}.executor").info("Creating queue")
        assert stream.getvalue() == ""

    def test_reconfigure_replaces_handler(self):
        configure_logging(stream=io.StringIO())
        logger = configure_logging(stream=io.StringIO())
        ours = [h for h in logger.handlers if getattr(h, "_pipeline_runtime", False)]
        assert len(ours) == 1

    def test_verbose_config_enables_logging(self):
        logger = configure_logging(verbose=False, stream=io.StringIO())
        PipelineExecutor(PipelineConfig(backend="host", verbose=True), backend=HostBackend())
        assert logger.level == logging.INFO
        ours = [h for h in logger.handlers if getattr(h, "_pipeline_runtime", False)]
        assert len(ours) == 1

    def test_quiet_config_leaves_logging_alone(self):
        logger = configure_logging(verbose=False, stream=io.StringIO())
        PipelineExecutor(PipelineConfig(backend="host"), backend=HostBackend())
        assert logger.level == logging.WARNING

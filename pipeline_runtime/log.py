"""Logging setup for the pipeline runtime.

Modules log through logging.getLogger("pipeline_runtime.<module>"); the runtime
never installs handlers on import. Drivers call configure_logging() once, or
hand PipelineExecutor a config with verbose=True.
"""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "pipeline_runtime"

_FORMAT = "[%(levelname)s] [%(name)s] %(message)s"


def configure_logging(verbose: bool = False, stream=None) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    verbose=True logs phase milestones (INFO); otherwise only warnings and errors.
    Calling again replaces the handler installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_pipeline_runtime", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._pipeline_runtime = True
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    return logger

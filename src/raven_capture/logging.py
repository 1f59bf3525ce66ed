import logging
from typing import Optional

from raven_capture.configuration import CaptureConfig
from raven_capture.dependency_injection import inject, injected


def setup_logger(logger: logging.Logger, level: Optional[int]):
    # Libraries leave output to the host application; only avoid "no handler" warnings.
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())
    if level is not None:
        logger.setLevel(level)


@inject
def setup_library_loggers(config: CaptureConfig = injected) -> logging.Logger:
    library_logger = logging.getLogger("raven_capture")
    setup_logger(library_logger, config.log_level)
    return library_logger

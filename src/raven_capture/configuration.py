import logging
import os
import socket
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from raven_capture.dependency_injection import Module

logger = logging.getLogger(__name__)

configuration_module = Module()
configuration_test_module = Module()


def parse_list_from_env(data: str | list[str]) -> list[str]:
    if isinstance(data, list):
        return data
    return data.split()


def parse_bool_from_env(data: str | bool) -> bool:
    if isinstance(data, bool):
        return data
    if not data.lower() in ("yes", "true", "t", "y", "1", "on"):
        return False
    return True


def parse_log_level_from_env(data: str | int) -> str:
    if isinstance(data, int):
        return logging.getLevelName(data)
    return data.strip().upper()


ParseList = Annotated[list[str], BeforeValidator(parse_list_from_env)]
ParseBool = Annotated[bool, BeforeValidator(parse_bool_from_env)]
ParseLogLevel = Annotated[str, BeforeValidator(parse_log_level_from_env)]


class CaptureConfig(BaseModel):
    RAVEN_RELEASE: str = ""
    RAVEN_ENVIRONMENT: str = "production"
    RAVEN_SERVER_NAME: str = Field(default_factory=socket.gethostname)
    RAVEN_LOGGER_NAME: str = "root"

    # Server variable keys that only repeat information already captured in the headers.
    NOISE_KEY_PREFIXES: ParseList = Field(default_factory=lambda: ["ALL_", "HTTP_"])

    # Skips traceback walking entirely and parses the formatted trace instead.
    FORCE_TEXT_TRACE_PARSING: ParseBool = False

    # Unset leaves the library loggers at whatever level the host application configures.
    CAPTURE_LOG_LEVEL: Optional[ParseLogLevel] = None

    @property
    def log_level(self) -> Optional[int]:
        if not self.CAPTURE_LOG_LEVEL:
            return None
        level = logging.getLevelName(self.CAPTURE_LOG_LEVEL)
        if not isinstance(level, int):
            logger.warning(f"Unknown CAPTURE_LOG_LEVEL {self.CAPTURE_LOG_LEVEL!r}, using WARNING")
            return logging.WARNING
        return level

    def do_validation(self):
        if not self.RAVEN_RELEASE:
            logger.info("RAVEN_RELEASE is not set, events will not carry a release")
        if not self.NOISE_KEY_PREFIXES:
            logger.warning("NOISE_KEY_PREFIXES is empty, server variables will include duplicates")


@configuration_module.provider
def load_from_environment(environ: dict[str, str] | None = None) -> CaptureConfig:
    return CaptureConfig.model_validate(environ or os.environ)


@configuration_test_module.provider
def provide_test_defaults() -> CaptureConfig:
    """
    Load defaults into the capture config useful for tests
    """

    base = load_from_environment()

    base.RAVEN_RELEASE = "test-release"
    base.RAVEN_ENVIRONMENT = "test"
    base.RAVEN_SERVER_NAME = "test-host"
    base.FORCE_TEXT_TRACE_PARSING = False
    base.NOISE_KEY_PREFIXES = ["ALL_", "HTTP_"]
    base.CAPTURE_LOG_LEVEL = "DEBUG"

    return base


configuration_module.enable()

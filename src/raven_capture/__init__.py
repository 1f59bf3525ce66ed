# Import order matters: each module enables its providers on import, and every one of them has to
# be enabled before a test (or an application) stacks its own overrides on top.
from raven_capture.configuration import CaptureConfig, configuration_module
from raven_capture.frames import (
    FrameExtractor,
    FrameWalkerUnavailable,
    NativeFrameWalker,
    TextTraceParser,
    extract_frames,
)
from raven_capture.models import ExceptionFrame, SentryRequest, SentryUser
from raven_capture.stacktrace import SentryStacktrace
from raven_capture.normalize import normalize_collection
from raven_capture.request import (
    AmbientRequestContext,
    FlaskRequestContextProvider,
    RequestContextProvider,
    WerkzeugRequestContextProvider,
    capture_request,
    capture_user,
)
from raven_capture.events import SentryEvent, SentryException
from raven_capture.transport import Transport
from raven_capture.client import CaptureClient, capture_exception
from raven_capture.logging import setup_library_loggers

setup_library_loggers()

__all__ = [
    "AmbientRequestContext",
    "CaptureClient",
    "CaptureConfig",
    "ExceptionFrame",
    "FlaskRequestContextProvider",
    "FrameExtractor",
    "FrameWalkerUnavailable",
    "NativeFrameWalker",
    "RequestContextProvider",
    "SentryEvent",
    "SentryException",
    "SentryRequest",
    "SentryStacktrace",
    "SentryUser",
    "TextTraceParser",
    "Transport",
    "WerkzeugRequestContextProvider",
    "capture_exception",
    "capture_request",
    "capture_user",
    "configuration_module",
    "extract_frames",
    "normalize_collection",
    "setup_library_loggers",
]

from typing import Optional

from raven_capture.dependency_injection import inject, injected
from raven_capture.frames import FrameExtractor
from raven_capture.models import ExceptionFrame, SentryModel


class SentryStacktrace(SentryModel):
    """
    The frames of one exception, in the order the traceback lists them (outermost call first).

    `frames` is None when no exception was given, and an empty list when an exception was given but
    none of its frames could be recovered.
    """

    frames: Optional[list[ExceptionFrame]] = None

    @classmethod
    @inject
    def from_exception(
        cls, exception: Optional[BaseException], extractor: FrameExtractor = injected
    ) -> "SentryStacktrace":
        if exception is None:
            return cls()
        return cls(frames=extractor.extract(exception))

    def __str__(self) -> str:
        if not self.frames:
            return ""
        return "".join(f"   at {frame}\n" for frame in self.frames)

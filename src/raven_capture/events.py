import datetime
import uuid
from typing import Iterator, Literal, Optional

from pydantic import Field

from raven_capture.configuration import CaptureConfig
from raven_capture.dependency_injection import inject, injected
from raven_capture.models import SentryModel, SentryRequest, SentryUser
from raven_capture.stacktrace import SentryStacktrace

Level = Literal["fatal", "error", "warning", "info", "debug"]


class SentryException(SentryModel):
    type: str
    value: Optional[str] = None
    module: Optional[str] = None
    stacktrace: Optional[SentryStacktrace] = None

    @classmethod
    def from_exception(cls, exception: BaseException) -> "SentryException":
        exception_type = type(exception)
        return cls(
            type=exception_type.__qualname__,
            value=safe_str(exception),
            module=exception_type.__module__,
            stacktrace=SentryStacktrace.from_exception(exception),
        )


class SentryEvent(SentryModel):
    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    level: Level = "error"
    platform: str = "python"
    logger: Optional[str] = None
    message: Optional[str] = None
    # Oldest cause first, the exception that was finally raised last.
    exceptions: list[SentryException] = Field(default_factory=list)
    request: Optional[SentryRequest] = None
    user: Optional[SentryUser] = None
    tags: Optional[dict[str, str]] = None
    release: Optional[str] = None
    environment: Optional[str] = None
    server_name: Optional[str] = None

    @classmethod
    @inject
    def from_exception(
        cls,
        exception: BaseException,
        message: Optional[str] = None,
        level: Level = "error",
        request: Optional[SentryRequest] = None,
        user: Optional[SentryUser] = None,
        tags: Optional[dict[str, str]] = None,
        config: CaptureConfig = injected,
    ) -> "SentryEvent":
        chain = list(iter_exception_chain(exception))
        return cls(
            level=level,
            logger=config.RAVEN_LOGGER_NAME,
            message=message if message is not None else safe_str(exception),
            exceptions=[SentryException.from_exception(e) for e in reversed(chain)],
            request=request,
            user=user,
            tags=tags or None,
            release=config.RAVEN_RELEASE or None,
            environment=config.RAVEN_ENVIRONMENT or None,
            server_name=config.RAVEN_SERVER_NAME or None,
        )


def iter_exception_chain(exception: Optional[BaseException]) -> Iterator[BaseException]:
    """
    Yields the exception, then whatever caused it: the explicit `raise ... from` cause, or the
    exception being handled when it was raised unless that context was suppressed.
    """
    seen: set[int] = set()
    while exception is not None and id(exception) not in seen:
        seen.add(id(exception))
        yield exception

        if exception.__cause__ is not None:
            exception = exception.__cause__
        elif exception.__suppress_context__:
            exception = None
        else:
            exception = exception.__context__


def safe_str(value: object) -> str:
    try:
        return str(value)
    except Exception as e:
        return f"<unprintable {type(value).__name__}: {type(e).__name__}>"

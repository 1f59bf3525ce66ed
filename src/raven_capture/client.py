import dataclasses
import logging
import threading
from typing import Optional

from raven_capture.configuration import CaptureConfig
from raven_capture.dependency_injection import Module, injected, resolve
from raven_capture.events import Level, SentryEvent
from raven_capture.request import RequestContextProvider, capture_request, capture_user
from raven_capture.transport import Transport

logger = logging.getLogger(__name__)

client_module = Module()


class _Capturing(threading.local):
    active: bool = False


_capturing = _Capturing()


@client_module.provider
@dataclasses.dataclass
class CaptureClient:
    transport: Transport = injected
    config: CaptureConfig = injected

    def capture_exception(
        self,
        exception: BaseException,
        message: Optional[str] = None,
        level: Level = "error",
        tags: Optional[dict[str, str]] = None,
        context: Optional[RequestContextProvider] = None,
    ) -> Optional[str]:
        """
        Reports the exception together with the current request and user, and returns the id of
        the event that was sent. Returns None instead of raising when anything goes wrong.
        """
        # A transport or log handler that reports its own failures would otherwise recurse here.
        if _capturing.active:
            logger.debug("Ignoring exception captured while another capture is in progress")
            return None

        _capturing.active = True
        try:
            event = SentryEvent.from_exception(
                exception,
                message=message,
                level=level,
                request=capture_request(context),
                user=capture_user(context),
                tags=tags,
                config=self.config,
            )
            self.transport.send(event.to_payload())
            return event.event_id
        except Exception:
            logger.exception("Unable to capture exception")
            return None
        finally:
            _capturing.active = False


def capture_exception(exception: BaseException, **kwargs) -> Optional[str]:
    try:
        client = resolve(CaptureClient)
    except Exception:
        logger.exception("No capture client is available")
        return None
    return client.capture_exception(exception, **kwargs)


client_module.enable()

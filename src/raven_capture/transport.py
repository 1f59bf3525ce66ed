import abc
import json
import logging
from typing import Any

from raven_capture.dependency_injection import Module

logger = logging.getLogger(__name__)

transport_module = Module()


class Transport(abc.ABC):
    """
    Delivers an assembled event payload. Delivery to the reporting service, and any retrying, is
    up to the implementation.
    """

    @abc.abstractmethod
    def send(self, payload: dict[str, Any]) -> None:
        pass


class LoggingTransport(Transport):
    def send(self, payload: dict[str, Any]) -> None:
        logger.info(f"Captured event {payload.get('event_id')}: {json.dumps(payload, sort_keys=True)}")


@transport_module.provider
def provide_transport() -> Transport:
    return LoggingTransport()


transport_module.enable()

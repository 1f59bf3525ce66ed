import logging
from typing import Any

import johen
import pytest
from johen.generators import pydantic

# Enables every provider module before tests stack their overrides on top.
import raven_capture  # noqa: F401
from raven_capture.configuration import configuration_test_module
from raven_capture.dependency_injection import Module
from raven_capture.transport import Transport

logger = logging.getLogger(__name__)


class RecordingTransport(Transport):
    def __init__(self):
        self.payloads: list[dict[str, Any]] = []

    def send(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)


@pytest.fixture(autouse=True)
def setup_capture():
    with configuration_test_module:
        yield


@pytest.fixture
def recording_transport():
    transport = RecordingTransport()
    transport_override = Module()
    transport_override.constant(Transport, transport)
    with transport_override:
        yield transport


johen.global_config["matchers"].extend([pydantic.generate_pydantic_instances])

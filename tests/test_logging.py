import logging

from raven_capture.client import CaptureClient
from raven_capture.configuration import CaptureConfig
from raven_capture.logging import setup_library_loggers, setup_logger
from raven_capture.transport import LoggingTransport


def test_setup_logger_is_idempotent():
    logger = logging.getLogger("raven_capture.tests.idempotent")

    setup_logger(logger, logging.INFO)
    setup_logger(logger, logging.ERROR)

    assert sum(isinstance(h, logging.NullHandler) for h in logger.handlers) == 1
    assert logger.level == logging.ERROR


def test_setup_library_loggers_uses_configured_level():
    library_logger = logging.getLogger("raven_capture")
    previous_level = library_logger.level
    try:
        logger = setup_library_loggers(config=CaptureConfig(CAPTURE_LOG_LEVEL="ERROR"))

        assert logger is library_logger
        assert logger.level == logging.ERROR
    finally:
        library_logger.setLevel(previous_level)


def test_setup_logger_without_level_keeps_existing_level():
    logger = logging.getLogger("raven_capture.tests.unset")
    logger.setLevel(logging.INFO)

    setup_logger(logger, None)

    assert logger.level == logging.INFO


def test_default_config_lets_captured_events_through(caplog):
    library_logger = logging.getLogger("raven_capture")
    previous_level = library_logger.level
    library_logger.setLevel(logging.NOTSET)
    try:
        setup_library_loggers(config=CaptureConfig())
        assert library_logger.level == logging.NOTSET

        client = CaptureClient(transport=LoggingTransport(), config=CaptureConfig())
        with caplog.at_level(logging.INFO):
            event_id = client.capture_exception(ValueError("card declined"))
    finally:
        library_logger.setLevel(previous_level)

    assert event_id is not None
    assert f"Captured event {event_id}" in caplog.text

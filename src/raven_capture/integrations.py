import logging
from typing import Any

from flask import Flask, got_request_exception

from raven_capture.client import capture_exception

logger = logging.getLogger(__name__)


def _on_request_exception(sender: Flask, exception: BaseException, **extra: Any) -> None:
    event_id = capture_exception(exception, tags={"handled": "no", "app": sender.name})
    if event_id:
        logger.debug(f"Reported unhandled {type(exception).__name__} as {event_id}")


def register_flask_app(app: Flask) -> Flask:
    """
    Reports every exception that escapes a view of `app`. The request is still active when the
    signal fires, so the event carries it along with the user.
    """
    got_request_exception.connect(_on_request_exception, app, weak=False)
    return app

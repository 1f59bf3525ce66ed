import datetime

from raven_capture.configuration import CaptureConfig
from raven_capture.events import SentryEvent, SentryException, iter_exception_chain, safe_str
from raven_capture.models import SentryRequest, SentryUser


class UnprintableError(Exception):
    def __str__(self):
        raise RuntimeError("cannot print")


def _load_order():
    try:
        {}["order"]
    except KeyError as e:
        raise ValueError("order could not be loaded") from e


def _caught(fn) -> BaseException:
    try:
        fn()
    except Exception as e:
        return e
    raise AssertionError("expected an exception")


def test_exception_from_raised_error():
    exception = _caught(_load_order)

    sentry_exception = SentryException.from_exception(exception)

    assert sentry_exception.type == "ValueError"
    assert sentry_exception.value == "order could not be loaded"
    assert sentry_exception.module == "builtins"
    assert sentry_exception.stacktrace is not None
    assert sentry_exception.stacktrace.frames is not None
    assert sentry_exception.stacktrace.frames[-1].function == f"{__name__}._load_order()"


def test_exception_chain_follows_causes():
    exception = _caught(_load_order)

    assert [type(e) for e in iter_exception_chain(exception)] == [ValueError, KeyError]


def test_exception_chain_follows_context_unless_suppressed():
    def implicit():
        try:
            raise KeyError("first")
        except KeyError:
            raise ValueError("second")

    def suppressed():
        try:
            raise KeyError("first")
        except KeyError:
            raise ValueError("second") from None

    assert [type(e) for e in iter_exception_chain(_caught(implicit))] == [ValueError, KeyError]
    assert [type(e) for e in iter_exception_chain(_caught(suppressed))] == [ValueError]


def test_exception_chain_stops_on_cycles():
    first = ValueError("first")
    second = KeyError("second")
    first.__cause__ = second
    second.__cause__ = first

    assert list(iter_exception_chain(first)) == [first, second]


def test_event_from_exception():
    exception = _caught(_load_order)
    request = SentryRequest(url="https://shop.example/orders", method="GET")
    user = SentryUser(username="jane")

    event = SentryEvent.from_exception(exception, request=request, user=user, tags={"team": "shop"})

    assert [e.type for e in event.exceptions] == ["KeyError", "ValueError"]
    assert event.message == "order could not be loaded"
    assert event.level == "error"
    assert event.release == "test-release"
    assert event.environment == "test"
    assert event.server_name == "test-host"
    assert event.timestamp.tzinfo == datetime.timezone.utc
    assert len(event.event_id) == 32

    payload = event.to_payload()
    assert payload["request"] == {"url": "https://shop.example/orders", "method": "GET"}
    assert payload["user"] == {"username": "jane"}
    assert payload["tags"] == {"team": "shop"}
    assert payload["platform"] == "python"


def test_event_payload_omits_missing_fields():
    config = CaptureConfig(RAVEN_RELEASE="", RAVEN_ENVIRONMENT="", RAVEN_SERVER_NAME="")

    payload = SentryEvent.from_exception(ValueError("never raised"), config=config).to_payload()

    assert set(payload.keys()) == {
        "event_id",
        "timestamp",
        "level",
        "platform",
        "logger",
        "message",
        "exceptions",
    }
    assert payload["exceptions"] == [
        {"type": "ValueError", "value": "never raised", "module": "builtins", "stacktrace": {"frames": []}}
    ]


def test_event_message_and_level_overrides():
    event = SentryEvent.from_exception(ValueError("boom"), message="checkout failed", level="fatal")

    assert event.message == "checkout failed"
    assert event.level == "fatal"


def test_safe_str_of_unprintable_values():
    assert safe_str(UnprintableError()) == "<unprintable UnprintableError: RuntimeError>"
    assert SentryException.from_exception(UnprintableError()).value == (
        "<unprintable UnprintableError: RuntimeError>"
    )

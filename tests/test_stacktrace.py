import itertools

from johen import generate

from raven_capture.models import ExceptionFrame
from raven_capture.stacktrace import SentryStacktrace


def _fail():
    raise KeyError("missing")


def test_no_exception_leaves_frames_unset():
    stacktrace = SentryStacktrace.from_exception(None)

    assert stacktrace.frames is None
    assert str(stacktrace) == ""
    assert stacktrace.to_payload() == {}


def test_exception_without_recoverable_frames_is_empty():
    stacktrace = SentryStacktrace.from_exception(KeyError("never raised"))

    assert stacktrace.frames == []
    assert str(stacktrace) == ""
    assert stacktrace.to_payload() == {"frames": []}


def test_from_raised_exception():
    try:
        _fail()
    except KeyError as e:
        stacktrace = SentryStacktrace.from_exception(e)

    assert stacktrace.frames is not None
    assert [frame.function for frame in stacktrace.frames] == [
        f"{__name__}.test_from_raised_exception()",
        f"{__name__}._fail()",
    ]


def test_renders_one_line_per_frame():
    stacktrace = SentryStacktrace(
        frames=[ExceptionFrame(function="A"), ExceptionFrame(function="B")]
    )

    assert str(stacktrace) == "   at A\n   at B\n"


def test_renders_file_and_line_when_known():
    stacktrace = SentryStacktrace(
        frames=[ExceptionFrame(function="Foo.Bar()", filename="/x/y.cs", line_number=10)]
    )

    assert str(stacktrace) == "   at Foo.Bar() in /x/y.cs:line 10\n"


def test_frame_payload_omits_missing_fields():
    assert ExceptionFrame(function="f").to_payload() == {"function": "f", "line_number": 0}
    assert ExceptionFrame(
        function="f", filename="a.py", module="a", source="app", line_number=3, column_number=9
    ).to_payload() == {
        "function": "f",
        "filename": "a.py",
        "module": "a",
        "source": "app",
        "line_number": 3,
        "column_number": 9,
    }


def test_frame_defaults_to_placeholder_function():
    assert ExceptionFrame().function == "<unknown>"


def test_generated_frame_payloads_never_carry_nulls():
    for frame in itertools.islice(generate(ExceptionFrame, generate_defaults=False), 50):
        payload = frame.to_payload()

        assert None not in payload.values()
        assert {"function", "line_number"} <= payload.keys()

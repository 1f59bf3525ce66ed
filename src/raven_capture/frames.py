"""
Turns a raised exception into the list of frames reported with it.

Two strategies exist. `NativeFrameWalker` reads the exception's traceback objects directly and is
used whenever the interpreter exposes stack frames. `TextTraceParser` matches frames out of the
formatted trace and only runs when the walker is unavailable or fails. The choice of walker is made
once, when the `FrameExtractor` is provided, not on every capture.
"""

import abc
import dataclasses
import functools
import importlib.metadata
import inspect
import itertools
import logging
import re
import traceback
from types import CodeType, TracebackType
from typing import Iterator, Optional

from raven_capture.configuration import CaptureConfig
from raven_capture.dependency_injection import Module, inject, injected
from raven_capture.models import UNKNOWN_FUNCTION, ExceptionFrame

logger = logging.getLogger(__name__)

frames_module = Module()


class FrameWalkerUnavailable(Exception):
    pass


class FrameWalker(abc.ABC):
    @abc.abstractmethod
    def walk(self, exception: BaseException) -> list[ExceptionFrame]:
        pass


class NativeFrameWalker(FrameWalker):
    def walk(self, exception: BaseException) -> list[ExceptionFrame]:
        tb = exception.__traceback__
        if tb is None:
            raise FrameWalkerUnavailable(f"{type(exception).__name__} was never raised")

        return [self.frame_from_traceback(entry) for entry in iter_traceback(tb)]

    def frame_from_traceback(self, tb: TracebackType) -> ExceptionFrame:
        code = tb.tb_frame.f_code
        module = tb.tb_frame.f_globals.get("__name__")
        if not isinstance(module, str):
            module = None

        return ExceptionFrame(
            function=format_function(code, module),
            filename=code.co_filename or None,
            module=module,
            source=source_for_module(module) if module else None,
            line_number=tb.tb_lineno or 0,
            column_number=column_number(code, tb.tb_lasti),
        )


class TextTraceParser(FrameWalker):
    """
    Matches frames out of a formatted trace. This loses modules, columns and parameter lists, so it
    is the last resort.

    Two line shapes are understood: `at Namespace.Type.Method(Args) in /path/File.cs:line 42`, as
    carried by exceptions relayed from other runtimes in a `stack_trace` attribute, and Python's own
    `File "/path/file.py", line 42, in function`.
    """

    # Several frames may share one line, so each frame ends where the next ` at ` begins.
    at_pattern = re.compile(
        r"(?<!\S)at (?P<source>.+?)(?: in (?P<filename>.+?):line (?P<line_number>[0-9]+))?"
        r"(?=\s+at\s|[ \t\r]*$)",
        re.MULTILINE,
    )
    python_pattern = re.compile(
        r'^[ \t]*File "(?P<filename>[^"]+)", line (?P<line_number>[0-9]+)(?:, in (?P<function>.+?))?[ \t\r]*$',
        re.MULTILINE,
    )

    def walk(self, exception: BaseException) -> list[ExceptionFrame]:
        return self.parse(trace_text(exception))

    def parse(self, text: str) -> list[ExceptionFrame]:
        # Source lines quoted in a Python traceback can look like `at ...` frames.
        python_matches = list(self.python_pattern.finditer(text))
        if python_matches:
            return [self._frame_from_python_match(match) for match in python_matches]

        return [self._frame_from_at_match(match) for match in self.at_pattern.finditer(text)]

    def _frame_from_at_match(self, match: re.Match) -> ExceptionFrame:
        filename = match.group("filename")
        line_number = match.group("line_number")
        return ExceptionFrame(
            function=match.group("source"),
            source=match.group("source"),
            filename=filename,
            line_number=int(line_number) if line_number else 0,
        )

    def _frame_from_python_match(self, match: re.Match) -> ExceptionFrame:
        return ExceptionFrame(
            function=match.group("function") or UNKNOWN_FUNCTION,
            filename=match.group("filename"),
            line_number=int(match.group("line_number")),
        )


@dataclasses.dataclass
class FrameExtractor:
    fallback: FrameWalker
    primary: Optional[FrameWalker] = None

    def extract(self, exception: BaseException) -> list[ExceptionFrame]:
        if self.primary is not None:
            try:
                return self.primary.walk(exception)
            except Exception:
                logger.warning(
                    "Unable to walk exception traceback, parsing the formatted trace instead",
                    exc_info=True,
                )

        try:
            return self.fallback.walk(exception)
        except Exception:
            logger.exception("Unable to get exception stack trace")
            return []


@inject
def probe_frame_walker(config: CaptureConfig = injected) -> Optional[FrameWalker]:
    if config.FORCE_TEXT_TRACE_PARSING:
        return None

    # Interpreters without stack frame support return None here.
    if inspect.currentframe() is None:
        logger.info("No stack frame support in this interpreter, stack traces will be parsed")
        return None

    return NativeFrameWalker()


@frames_module.provider
def provide_frame_extractor() -> FrameExtractor:
    return FrameExtractor(primary=probe_frame_walker(), fallback=TextTraceParser())


@inject
def extract_frames(
    exception: BaseException, extractor: FrameExtractor = injected
) -> list[ExceptionFrame]:
    return extractor.extract(exception)


def iter_traceback(tb: Optional[TracebackType]) -> Iterator[TracebackType]:
    while tb is not None:
        yield tb
        tb = tb.tb_next


def trace_text(exception: BaseException) -> str:
    stack_trace = getattr(exception, "stack_trace", None)
    if isinstance(stack_trace, str):
        return stack_trace
    return "".join(traceback.format_tb(exception.__traceback__))


def format_function(code: CodeType, module: Optional[str]) -> str:
    """
    Renders `module.Qualified.name(a, *args, b, **kwargs)`, dropping the module prefix when the
    code has no owning module.
    """
    name = getattr(code, "co_qualname", code.co_name)

    positional = code.co_argcount
    keyword_only = code.co_kwonlyargcount
    names = list(code.co_varnames[: positional + keyword_only])
    index = positional + keyword_only
    if code.co_flags & inspect.CO_VARARGS:
        names.insert(positional, "*" + code.co_varnames[index])
        index += 1
    if code.co_flags & inspect.CO_VARKEYWORDS:
        names.append("**" + code.co_varnames[index])

    params = ", ".join(names)
    if module:
        return f"{module}.{name}({params})"
    return f"{name}({params})"


def column_number(code: CodeType, lasti: int) -> Optional[int]:
    positions = getattr(code, "co_positions", None)
    if positions is None or lasti < 0:
        return None

    # One position entry per two-byte code unit.
    position = next(itertools.islice(positions(), lasti // 2, None), None)
    if position is None or position[2] is None:
        return None
    return position[2] + 1


@functools.cache
def _distributions_by_package() -> dict[str, list[str]]:
    return dict(importlib.metadata.packages_distributions())


@functools.lru_cache(maxsize=1024)
def source_for_module(module: str) -> str:
    """
    Display name of the distribution installing the module's top level package, or the package
    name itself for code that was not installed (scripts, tests, `__main__`).
    """
    package = module.split(".", 1)[0]
    distributions = _distributions_by_package().get(package)
    if not distributions:
        return package

    try:
        title = importlib.metadata.metadata(distributions[0])["Name"]
    except importlib.metadata.PackageNotFoundError:
        return distributions[0]
    return title or distributions[0]


frames_module.enable()

"""
A small dependency injection registry that decides what to inject from callable annotations.

Capture collaborators (configuration, the frame extractor, the ambient request handle, the
transport) are registered as providers on a `Module`:

@module.provider
def provide_transport(config: CaptureConfig = injected) -> Transport:
  ...

@inject
def capture(exc: BaseException, transport: Transport = injected):
  ...

capture(exc) # transport is resolved from the active injector and cached there.

Tests swap collaborators by enabling a module that overrides them, either with `with module:`
or by calling `module.enable()` from a fixture (see tests/conftest.py).
"""

import dataclasses
import functools
import inspect
import threading
from typing import Any, Callable, TypeVar

from johen.generators.annotations import AnnotationProcessingContext

_A = TypeVar("_A")
_C = TypeVar("_C", bound=Callable[[], Any])


@dataclasses.dataclass(frozen=True)
class FactoryAnnotation:
    concrete_type: type

    @classmethod
    def from_annotation(cls, source: Any) -> "FactoryAnnotation":
        annotation = AnnotationProcessingContext.from_source(source)
        assert (
            annotation.origin is None
        ), f"Cannot get_factory {source}, only concrete types are supported"
        return FactoryAnnotation(concrete_type=annotation.source)

    @classmethod
    def from_factory(cls, c: Callable) -> "FactoryAnnotation":
        argspec = inspect.getfullargspec(c)
        num_arg_defaults = len(argspec.defaults) if argspec.defaults is not None else 0
        num_kwd_defaults = len(argspec.kwonlydefaults) if argspec.kwonlydefaults is not None else 0

        # Constructors carry an implicit self and produce their own type
        if inspect.isclass(c):
            num_arg_defaults += 1
            rv = c
        else:
            rv = argspec.annotations.get("return", None)
            assert rv is not None, "Cannot register a provider without a return annotation"

        assert num_arg_defaults >= len(
            argspec.args
        ), "Cannot register a provider with required positional args"
        assert num_kwd_defaults >= len(
            argspec.kwonlyargs
        ), "Cannot register a provider with required keyword args"
        return FactoryAnnotation.from_annotation(rv)


class FactoryNotFound(Exception):
    pass


@dataclasses.dataclass
class Module:
    registry: dict[FactoryAnnotation, Callable] = dataclasses.field(default_factory=dict)

    def provider(self, c: _C) -> _C:
        c = inject(c)

        key = FactoryAnnotation.from_factory(c)
        assert (
            key not in self.registry
        ), f"{key.concrete_type} already has a provider in this module"
        self.registry[key] = c
        return c

    def constant(self, annotation: type[_A], val: _A) -> _A:
        key = FactoryAnnotation.from_annotation(annotation)
        self.registry[key] = lambda: val
        return val

    def enable(self) -> "Injector":
        injector = Injector(self, _cur.injector)
        _cur.injector = injector
        return injector

    def __enter__(self) -> "Injector":
        return self.enable()

    def __exit__(self, exc_type, exc_val, exc_tb):
        assert _cur.injector, "Injector state was tampered with, or __exit__ invoked prematurely"
        assert (
            _cur.injector.module is self
        ), "Injector state was tampered with, or __exit__ invoked prematurely"
        _cur.injector = _cur.injector.parent


class _Injected:
    """
    Sentinel default marking a parameter to be filled from the active injector when the caller
    does not pass it explicitly.
    """

    pass


# Typed as Any so it can stand in as the default of any annotation.
injected: Any = _Injected()


def inject(c: _A) -> _A:
    original_type = c
    if inspect.isclass(c):
        c = c.__init__

    argspec = inspect.getfullargspec(c)

    @functools.wraps(c)  # type: ignore
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        new_kwds = {**kwargs}

        if argspec.defaults:
            offset = len(argspec.args) - len(argspec.defaults)
            for i, d in enumerate(argspec.defaults):
                arg_idx = offset + i
                arg_name = argspec.args[arg_idx]

                if d is injected and len(args) <= arg_idx and arg_name not in new_kwds:
                    try:
                        annotation = argspec.annotations[arg_name]
                    except KeyError:
                        raise AssertionError(
                            f"Cannot inject argument {arg_name} as it lacks annotations"
                        )
                    new_kwds[arg_name] = resolve(annotation)

        if argspec.kwonlydefaults:
            for k, v in argspec.kwonlydefaults.items():
                if v is injected and k not in new_kwds:
                    try:
                        annotation = argspec.annotations[k]
                    except KeyError:
                        raise AssertionError(f"Cannot inject argument {k} as it lacks annotations")
                    new_kwds[k] = resolve(annotation)

        return c(*args, **new_kwds)  # type: ignore

    if inspect.isclass(original_type):
        return type(original_type.__name__, (original_type,), dict(__init__=wrapper))  # type: ignore

    return wrapper  # type: ignore


def resolve(source: type[_A]) -> _A:
    if _cur.injector is None:
        raise FactoryNotFound(f"Cannot resolve '{source}', no module injector is currently active.")

    key = FactoryAnnotation.from_annotation(source)

    if _cur.seen is None:
        _cur.seen = []

    if key in _cur.seen:
        chain = " -> ".join(str(k.concrete_type) for k in _cur.seen)
        raise FactoryNotFound(f"Circular dependency: {chain} -> {key.concrete_type}")

    _cur.seen.append(key)
    try:
        return _cur.injector.get(source)
    finally:
        _cur.seen.remove(key)


@dataclasses.dataclass
class Injector:
    """
    Resolves providers for one enabled module, delegating to the module enabled before it.

    Results are cached per injector, so a provider runs at most once while its module is enabled.
    The cache is not locked: two threads resolving the same key for the first time may both run the
    provider, and whichever finishes last is kept. Providers here are pure lookups, so either
    result is equivalent.
    """

    module: Module
    parent: "Injector | None"
    _cache: dict[FactoryAnnotation, Any] = dataclasses.field(default_factory=dict)

    @property
    def cache(self) -> dict[FactoryAnnotation, Any]:
        if _cur.injector is not None:
            return _cur.injector._cache
        return self._cache

    def get(self, source: type[_A]) -> _A:
        key = FactoryAnnotation.from_annotation(source)
        if key in self.cache:
            return self.cache[key]

        try:
            f = self.module.registry[key]
        except KeyError:
            if self.parent is not None:
                return self.parent.get(source)
            raise FactoryNotFound(f"No registered factory for {source}")

        rv = self.cache[key] = f()
        return rv


class _Seen(threading.local):
    keys: list[FactoryAnnotation] | None = None


class _Cur:
    # The enabled injector is shared by every thread of the process; only the
    # circular dependency bookkeeping is per thread.
    injector: Injector | None = None
    _seen = _Seen()

    @property
    def seen(self) -> list[FactoryAnnotation] | None:
        return self._seen.keys

    @seen.setter
    def seen(self, value: list[FactoryAnnotation] | None) -> None:
        self._seen.keys = value


_cur = _Cur()

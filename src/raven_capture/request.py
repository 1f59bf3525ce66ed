"""
Snapshots the HTTP request an exception happened in, and the user who made it.

The capture functions never reach into a web framework themselves. They read a
`RequestContextProvider`, either passed in explicitly or obtained from the process-wide
`AmbientRequestContext`, which defaults to Flask's current request when one is active.
"""

import abc
import logging
from typing import Any, Callable, Mapping, Optional, Sequence

import flask
from werkzeug.wrappers import Request

from raven_capture.configuration import CaptureConfig
from raven_capture.dependency_injection import Module, inject, injected
from raven_capture.models import SentryRequest, SentryUser
from raven_capture.normalize import normalize_collection

logger = logging.getLogger(__name__)

request_module = Module()


class RequestContextProvider(abc.ABC):
    """
    Read access to one in-flight request. Any accessor may return None when the hosting framework
    does not know the answer.
    """

    @abc.abstractmethod
    def url(self) -> Optional[str]:
        pass

    @abc.abstractmethod
    def method(self) -> Optional[str]:
        pass

    def query_string(self) -> Optional[str]:
        return None

    def headers(self) -> Optional[Mapping[str, Any]]:
        return None

    def cookies(self) -> Optional[Mapping[str, Any]]:
        return None

    def server_variables(self) -> Optional[Mapping[str, Any]]:
        return None

    def form_fields(self) -> Optional[Mapping[str, Any]]:
        return None

    def body(self) -> Optional[str]:
        return None

    def principal(self) -> Any:
        return None

    def remote_address(self) -> Optional[str]:
        return None


class WerkzeugRequestContextProvider(RequestContextProvider):
    def __init__(self, request: Request):
        self._request = request

    @property
    def request(self) -> Request:
        return self._request

    def url(self) -> Optional[str]:
        return self.request.url

    def method(self) -> Optional[str]:
        return self.request.method

    def query_string(self) -> Optional[str]:
        return self.request.query_string.decode("utf-8", "replace")

    def headers(self) -> Optional[Mapping[str, Any]]:
        return self.request.headers

    def cookies(self) -> Optional[Mapping[str, Any]]:
        return self.request.cookies

    def server_variables(self) -> Optional[Mapping[str, Any]]:
        return self.request.environ

    def form_fields(self) -> Optional[Mapping[str, Any]]:
        return self.request.form

    def body(self) -> Optional[str]:
        if not self.request.content_length:
            return None
        return self.request.get_data(cache=True, as_text=True)

    def principal(self) -> Any:
        authorization = self.request.authorization
        if authorization is not None and authorization.username:
            return authorization.username
        return self.request.environ.get("REMOTE_USER")

    def remote_address(self) -> Optional[str]:
        return self.request.remote_addr


class FlaskRequestContextProvider(WerkzeugRequestContextProvider):
    """
    Reads whichever request Flask considers current at call time. Applications that keep the
    logged-in user on `flask.g.user` get it reported as the principal.
    """

    def __init__(self):
        # The proxy resolves to the active request on every access.
        super().__init__(flask.request)

    def principal(self) -> Any:
        user = flask.g.get("user")
        if user is not None:
            return user
        return super().principal()


class AmbientRequestContext(abc.ABC):
    @abc.abstractmethod
    def current(self) -> Optional[RequestContextProvider]:
        pass


class FlaskAmbientRequestContext(AmbientRequestContext):
    def current(self) -> Optional[RequestContextProvider]:
        if not flask.has_request_context():
            return None
        return FlaskRequestContextProvider()


class NoAmbientRequestContext(AmbientRequestContext):
    def current(self) -> Optional[RequestContextProvider]:
        return None


@request_module.provider
def provide_ambient_request_context() -> AmbientRequestContext:
    # Resolved once per enabled module and cached by the injector.
    return FlaskAmbientRequestContext()


@inject
def capture_request(
    context: Optional[RequestContextProvider] = None,
    ambient: AmbientRequestContext = injected,
    config: CaptureConfig = injected,
) -> Optional[SentryRequest]:
    """
    Returns None when there is no request to snapshot, or when snapshotting it fails entirely.
    """
    try:
        if context is None:
            context = ambient.current()
        if context is None:
            return None
        return snapshot_request(context, config.NOISE_KEY_PREFIXES)
    except Exception:
        logger.exception("Unable to capture request")
        return None


def snapshot_request(
    context: RequestContextProvider, noise_prefixes: Sequence[str]
) -> SentryRequest:
    form = _normalized(context.form_fields, noise_prefixes)
    data: dict[str, str] | str | None = form
    if not form:
        data = _read(context.body, "request body") or form

    return SentryRequest(
        url=context.url(),
        method=context.method(),
        query_string=context.query_string(),
        env=_normalized(context.server_variables, noise_prefixes),
        headers=_normalized(context.headers, noise_prefixes),
        cookies=_normalized(context.cookies, noise_prefixes),
        data=data,
    )


@inject
def capture_user(
    context: Optional[RequestContextProvider] = None,
    ambient: AmbientRequestContext = injected,
) -> Optional[SentryUser]:
    if context is None:
        try:
            context = ambient.current()
        except Exception:
            logger.exception("Unable to resolve the current request")
            return None
    if context is None:
        return None

    principal = _read(context.principal, "principal")
    ip_address = _read(context.remote_address, "remote address")
    if ip_address is not None:
        ip_address = str(ip_address)

    try:
        return SentryUser.from_principal(principal, ip_address)
    except Exception:
        logger.exception("Unable to read user from principal")
        return SentryUser(ip_address=ip_address)


def _normalized(
    getter: Callable[[], Optional[Mapping[str, Any]]], noise_prefixes: Sequence[str]
) -> Optional[dict[str, str]]:
    try:
        collection = getter()
    except Exception:
        logger.exception(f"Unable to read request {getter.__name__}")
        return {}
    if collection is None:
        return None
    return normalize_collection(collection, noise_prefixes)


def _read(getter: Callable[[], Any], description: str) -> Any:
    try:
        return getter()
    except Exception:
        logger.exception(f"Unable to read {description}")
        return None


request_module.enable()

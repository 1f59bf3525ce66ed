from typing import Annotated, Any, Optional

from johen.examples import Examples
from johen.generators import specialized
from pydantic import BaseModel, ConfigDict

UNKNOWN_FUNCTION = "<unknown>"


class SentryModel(BaseModel):
    """
    Base for every payload fragment. Fields are named after their snake_case wire keys, and
    `to_payload` drops anything that is None rather than emitting explicit nulls.
    """

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ExceptionFrame(SentryModel):
    function: Annotated[str, Examples(specialized.ascii_words)] = UNKNOWN_FUNCTION
    filename: Optional[Annotated[str, Examples(specialized.file_paths)]] = None
    module: Optional[str] = None
    # Display name of the distribution or package the frame's code belongs to.
    source: Optional[str] = None
    line_number: int = 0
    column_number: Optional[int] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.function} in {self.filename}:line {self.line_number}"
        return self.function


class SentryRequest(SentryModel):
    """
    The request interface of an event. `url` and `method` are required by the reporting service;
    `env` is the webserver environment and is where REMOTE_ADDR is looked up.
    """

    url: Optional[str] = None
    method: Optional[str] = None
    query_string: Optional[str] = None
    env: Optional[dict[str, str]] = None
    headers: Optional[dict[str, str]] = None
    cookies: Optional[dict[str, str]] = None
    # Request body only, never the query string: form fields or the raw body.
    data: dict[str, str] | str | None = None


class SentryUser(SentryModel):
    id: Optional[str] = None
    username: Optional[str] = None
    ip_address: Optional[str] = None
    is_authenticated: Optional[bool] = None

    @classmethod
    def from_principal(cls, principal: Any, ip_address: Optional[str] = None) -> "SentryUser":
        if principal is None:
            return cls(ip_address=ip_address)

        if isinstance(principal, str):
            return cls(username=principal, ip_address=ip_address)

        username = _first_attr(principal, ("username", "name", "email"))
        user_id = principal.get_id() if callable(getattr(principal, "get_id", None)) else None
        if user_id is None:
            user_id = _first_attr(principal, ("id", "pk"))
        is_authenticated = getattr(principal, "is_authenticated", None)

        return cls(
            id=str(user_id) if user_id is not None else None,
            username=str(username) if username is not None else None,
            ip_address=ip_address,
            is_authenticated=is_authenticated if isinstance(is_authenticated, bool) else None,
        )


def _first_attr(obj: Any, names: tuple[str, ...]) -> Any:
    for name in names:
        value = getattr(obj, name, None)
        if value is not None and not callable(value):
            return value
    return None

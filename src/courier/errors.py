"""Exception hierarchy for Courier.

Request outcomes are classified exactly once, where the failure originates
(HTTP status inspection, decode failure, module result). Everything above
the transport treats a ``ResponseError`` as an opaque value except for the
401/403 discriminant exposed by ``is_auth_failure``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Iterator


class CourierError(Exception):
    """Base exception for all Courier errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CourierError):
    """Configuration validation or resolution failed."""


class ModuleContractError(CourierError):
    """A module class does not satisfy the capability contract."""


class ResponseError(CourierError):
    """Classified failure outcome of a dispatched request.

    Instances travel inside ``Failure`` results; modules may also raise them,
    in which case the dispatcher converts them back into a ``Failure``.
    The underlying cause, when any, is attached as ``__cause__``.
    """

    default_status: ClassVar[int] = 500
    default_message: ClassVar[str] = "Request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        reason: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message or self.default_message, hint=hint)
        self.status_code = (
            status_code if status_code is not None else self.default_status
        )
        self.reason = reason
        if cause is not None:
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        """The transport or parsing error this failure wraps, if any."""
        return self.__cause__

    @property
    def is_auth_failure(self) -> bool:
        """Whether this failure should trigger a recovery attempt."""
        return False

    @classmethod
    def from_status(
        cls, status_code: int, *, cause: BaseException | None = None
    ) -> ResponseError:
        """Classify an HTTP status code.

        The mapping is total: 400, 401, 403 and 500 map to their own variant,
        any other 5xx maps to ``ServerError`` and everything else (other 4xx,
        and statuses that are not errors at all) maps to ``OtherResponseError``.
        """
        explicit = _EXPLICIT_STATUS.get(status_code)
        if explicit is not None:
            return explicit(status_code=status_code, cause=cause)
        if 500 <= status_code <= 599:
            return ServerError(
                f"Server error (HTTP {status_code})",
                status_code=status_code,
                cause=cause,
            )
        return OtherResponseError(
            f"Unexpected response (HTTP {status_code})",
            status_code=status_code,
            cause=cause,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code!r}, "
            f"reason={self.reason!r})"
        )


class BadRequestError(ResponseError):
    """HTTP 400, or a request no handler can legally service."""

    default_status = 400
    default_message = "Bad request"


class UnauthorizedError(ResponseError):
    """HTTP 401: credentials missing or expired."""

    default_status = 401
    default_message = "Unauthorized"

    @property
    def is_auth_failure(self) -> bool:
        return True


class ForbiddenError(ResponseError):
    """HTTP 403: credentials valid but insufficient."""

    default_status = 403
    default_message = "Forbidden"

    @property
    def is_auth_failure(self) -> bool:
        return True


class ServerError(ResponseError):
    """HTTP 5xx or a transport-level failure."""

    default_status = 500
    default_message = "Server error"


class OtherResponseError(ResponseError):
    """Residual outcomes: unclassified statuses and decode failures."""

    default_status = 400
    default_message = "Unexpected response"


_EXPLICIT_STATUS: dict[int, type[ResponseError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    500: ServerError,
}


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection.

    Modules often wrap a classified failure in their own exception type
    (``raise LoginScreenError(...) from UnauthorizedError()``); walking both
    links lets the dispatcher still see the 401/403 and start recovery.
    """
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)


def find_response_error(exc: BaseException) -> ResponseError | None:
    """Return the first ``ResponseError`` in *exc*'s chain, if any."""
    for e in _walk_exception_chain(exc):
        if isinstance(e, ResponseError):
            return e
    return None

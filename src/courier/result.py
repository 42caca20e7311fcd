"""Result values delivered for every dispatched request.

Failures are an ordinary part of the data flow: modules and the transport
return ``Failure(ResponseError)`` instead of raising, so the dispatcher can
branch on the 401/403 discriminant without broad try/except blocks.
"""

from __future__ import annotations

import dataclasses
import typing

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful outcome carrying the decoded value."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed outcome carrying the classified error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]


def is_auth_failure(result: Success[typing.Any] | Failure[typing.Any]) -> bool:
    """Return True when *result* failed with a 401/403-classified error."""
    if not isinstance(result, Failure):
        return False
    return bool(getattr(result.error, "is_auth_failure", False))

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
import pytest

from courier.errors import (
    BadRequestError,
    CourierError,
    ForbiddenError,
    OtherResponseError,
    ResponseError,
    ServerError,
    UnauthorizedError,
    find_response_error,
)
from courier.result import Failure, Success, is_auth_failure

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (400, BadRequestError),
        (401, UnauthorizedError),
        (403, ForbiddenError),
        (500, ServerError),
        (503, ServerError),
        (404, OtherResponseError),
        (429, OtherResponseError),
        (302, OtherResponseError),
    ],
)
def test_from_status_classifies_explicit_and_ranged_codes(
    status: int, expected: type[ResponseError]
) -> None:
    err = ResponseError.from_status(status)

    assert type(err) is expected
    assert err.status_code == status


@given(st.integers(min_value=100, max_value=999))
def test_from_status_is_total(status: int) -> None:
    """Every status maps to exactly one variant and keeps its code."""
    err = ResponseError.from_status(status)

    assert isinstance(err, ResponseError)
    assert err.status_code == status
    if 500 <= status <= 599:
        assert isinstance(err, ServerError)
    elif status not in (400, 401, 403):
        assert isinstance(err, OtherResponseError)


def test_only_401_and_403_are_auth_failures() -> None:
    assert UnauthorizedError().is_auth_failure
    assert ForbiddenError().is_auth_failure
    assert not BadRequestError().is_auth_failure
    assert not ServerError().is_auth_failure
    assert not OtherResponseError().is_auth_failure


def test_response_error_defaults_and_cause() -> None:
    cause = ValueError("bad json")
    err = OtherResponseError(reason="decode_failed", cause=cause)

    assert str(err) == "Unexpected response"
    assert err.status_code == 400
    assert err.reason == "decode_failed"
    assert err.cause is cause
    assert err.__cause__ is cause
    assert err.hint is None
    assert isinstance(err, CourierError)


def test_find_response_error_walks_the_chain() -> None:
    inner = UnauthorizedError()
    try:
        try:
            raise inner
        except UnauthorizedError as exc:
            raise RuntimeError("wrapped") from exc
    except RuntimeError as outer:
        assert find_response_error(outer) is inner

    assert find_response_error(ValueError("plain")) is None


def test_result_auth_failure_discriminant() -> None:
    assert is_auth_failure(Failure(UnauthorizedError()))
    assert is_auth_failure(Failure(ForbiddenError()))
    assert not is_auth_failure(Failure(ServerError()))
    assert not is_auth_failure(Failure(ValueError("not a response error")))
    assert not is_auth_failure(Success(None))

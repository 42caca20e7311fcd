from __future__ import annotations

import asyncio

import pytest

from courier.session import Session

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_new_session_is_unauthorized() -> None:
    snapshot = await Session().snapshot()

    assert not snapshot.is_authorized
    assert snapshot.bearer_token is None


@pytest.mark.asyncio
async def test_authorize_and_revoke_change_flag_and_token_together() -> None:
    session = Session()

    await session.authorize("abc")
    authorized = await session.snapshot()
    await session.revoke()
    revoked = await session.snapshot()

    assert (authorized.is_authorized, authorized.bearer_token) == (True, "abc")
    assert (revoked.is_authorized, revoked.bearer_token) == (False, None)
    assert not await session.is_authorized()


@pytest.mark.asyncio
async def test_concurrent_writers_leave_a_consistent_state() -> None:
    session = Session()

    await asyncio.gather(
        *(session.authorize(f"t{i}") for i in range(10)),
        session.revoke(),
    )
    snapshot = await session.snapshot()

    assert snapshot.is_authorized == (snapshot.bearer_token is not None)


def test_repr_never_shows_the_token() -> None:
    session = Session()
    asyncio.run(session.authorize("secret"))

    assert "secret" not in repr(session)
    assert "[REDACTED]" in repr(session)

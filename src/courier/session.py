"""Process-wide authorization state shared by concurrent dispatches."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent view of the session at one point in time."""

    is_authorized: bool
    bearer_token: str | None

    def __repr__(self) -> str:
        token = "[REDACTED]" if self.bearer_token else None
        return f"SessionSnapshot(is_authorized={self.is_authorized}, bearer_token={token})"


class Session:
    """Authorized flag plus the current bearer credential.

    Reads and writes go through an ``asyncio.Lock`` so the flag and the token
    always change together. This is the only copy of the credential: every
    remote call takes a ``snapshot()`` and sends its token.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._is_authorized = False
        self._bearer_token: str | None = None

    async def snapshot(self) -> SessionSnapshot:
        async with self._lock:
            return SessionSnapshot(self._is_authorized, self._bearer_token)

    async def is_authorized(self) -> bool:
        async with self._lock:
            return self._is_authorized

    async def authorize(self, token: str) -> None:
        """Mark the session authorized with a fresh bearer token."""
        async with self._lock:
            self._bearer_token = token
            self._is_authorized = True

    async def revoke(self) -> None:
        """Drop the credential and mark the session unauthorized."""
        async with self._lock:
            self._bearer_token = None
            self._is_authorized = False

    def __repr__(self) -> str:
        token = "[REDACTED]" if self._bearer_token else None
        return f"Session(is_authorized={self._is_authorized}, bearer_token={token})"

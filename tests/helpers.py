"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: scripted modules stand in for feature
modules, and ``ScriptedBackend`` stands in for the remote host via
``httpx.MockTransport``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel

from courier.config import Config
from courier.dispatcher import Dispatcher
from courier.modules.base import BaseModule
from courier.request import InternalRequest, RemoteRequest
from courier.transport import Transport

REMOTE_HOST = "api.test"

# =============================================================================
# Shared Models
# =============================================================================


class Profile(BaseModel):
    name: str


class Payment(BaseModel):
    amount: int


class EmailList(BaseModel):
    subjects: list[str]


@dataclass(frozen=True)
class ProfileRequest(RemoteRequest[Profile]):
    method = "GET"
    path = "/profile"


@dataclass(frozen=True)
class UpdateProfileRequest(RemoteRequest[Profile]):
    method = "PUT"
    path = "/profile"


@dataclass(frozen=True)
class PaymentPayRequest(InternalRequest[Payment]):
    pass


@dataclass(frozen=True)
class EmailListRequest(InternalRequest[EmailList]):
    pass


# =============================================================================
# Test Doubles
# =============================================================================


def scripted_module(*request_types: type[Any], script: list[Any]) -> type[BaseModule]:
    """Build a module class answering from *script* in order.

    Items are results (returned) or exceptions (raised); the last item
    repeats once the script runs out. Counters live on the class because the
    dispatcher builds a fresh instance per dispatch.
    """
    pending = list(script)

    class ScriptedModule(BaseModule):
        capabilities = frozenset(request_types)
        instances: ClassVar[int] = 0
        handled: ClassVar[list[Any]] = []
        callbacks: ClassVar[list[tuple[Any, Any]]] = []

        def __init__(self, present: Any, dismiss: Any) -> None:
            super().__init__(present, dismiss)
            type(self).instances += 1
            type(self).callbacks.append((present, dismiss))

        async def handle(self, dispatcher: Any, request: Any) -> Any:
            _ = dispatcher
            type(self).handled.append(request)
            item = pending.pop(0) if len(pending) > 1 else pending[0]
            if isinstance(item, BaseException):
                raise item
            return item

    return ScriptedModule


@dataclass
class ScriptedBackend:
    """In-memory remote host: answers requests from a scripted list.

    Each item is ``(status, kwargs)`` passed to ``httpx.Response``, or an
    exception to raise. The last item repeats once the script runs out.
    """

    script: list[tuple[int, dict[str, Any]] | BaseException]
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        status, kwargs = item
        return httpx.Response(status, **kwargs)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def authorization_headers(self) -> list[str | None]:
        return [r.headers.get("Authorization") for r in self.requests]


def make_dispatcher(
    backend: ScriptedBackend | None = None, **kwargs: Any
) -> Dispatcher:
    """Dispatcher whose transport talks to *backend* instead of the network."""
    if backend is None:
        backend = ScriptedBackend(script=[(599, {})])
    transport = Transport(
        Config(remote_host=REMOTE_HOST, scheme="https"),
        http_transport=backend.transport(),
    )
    return Dispatcher(transport=transport, **kwargs)


async def authorize(dispatcher: Dispatcher, token: str = "stale") -> None:
    """Put *dispatcher* in an already-authorized state."""
    await dispatcher.session.authorize(token)

"""Typed request descriptions.

A request names an operation, carries an opaque payload in ``data`` and
statically declares the type its response decodes into. The declared type
is taken from the generic parameter of the request kind:

    @dataclass(frozen=True)
    class ProfileRequest(RemoteRequest[Profile]):
        method = "GET"
        path = "/profile"

``InternalRequest`` subclasses are dispatched to local modules;
``RemoteRequest`` subclasses only ever reach the transport.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
from dataclasses import dataclass
import types
import typing
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel

if TYPE_CHECKING:
    import httpx

_QUERY_METHODS = frozenset({"GET", "HEAD", "DELETE", "OPTIONS"})


@dataclass(frozen=True)
class Request[T]:
    """Immutable request with a statically declared response type."""

    data: Any = None

    #: Resolved from the generic parameter at class creation.
    response_type: ClassVar[type[Any] | None] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "response_type" in cls.__dict__:
            return
        for base in types.get_original_bases(cls):
            origin = typing.get_origin(base)
            args = typing.get_args(base)
            if not (isinstance(origin, type) and issubclass(origin, Request)):
                continue
            if args and not isinstance(args[0], typing.TypeVar):
                cls.response_type = args[0]
                return

    @classmethod
    def declared_response_type(cls) -> type[Any] | None:
        """Return the response type this request kind decodes into."""
        return cls.response_type


@dataclass(frozen=True)
class InternalRequest[T](Request[T]):
    """Request serviced in-process by a registered module."""


@dataclass(frozen=True)
class RemoteRequest[T](Request[T]):
    """Request serviced by the remote HTTP backend."""

    method: ClassVar[str] = "GET"
    path: ClassVar[str] = "/"
    #: Endpoints reachable without a session (e.g. the login call a login
    #: module makes itself) set this to False: no pre-flight recovery and no
    #: recovery on 401/403.
    requires_auth: ClassVar[bool] = True

    def payload(self) -> dict[str, Any]:
        """Return ``data`` as a JSON-compatible mapping."""
        data = self.data
        if data is None:
            return {}
        if isinstance(data, BaseModel):
            return data.model_dump(mode="json", by_alias=True, exclude_none=True)
        if dataclasses.is_dataclass(data) and not isinstance(data, type):
            return {k: v for k, v in dataclasses.asdict(data).items() if v is not None}
        if isinstance(data, Mapping):
            return dict(data)
        raise TypeError(
            f"{type(self).__name__}.data must be a model, dataclass or mapping, "
            f"got {type(data).__name__}"
        )

    def build(
        self, client: httpx.AsyncClient, *, bearer_token: str | None = None
    ) -> httpx.Request:
        """Build the wire request against *client*'s host and default headers.

        A *bearer_token* is sent as ``Authorization: Bearer <token>`` on this
        request only.
        """
        method = self.method.upper()
        payload = self.payload()
        headers = {"Authorization": f"Bearer {bearer_token}"} if bearer_token else None
        if method in _QUERY_METHODS:
            return client.build_request(
                method, self.path, params=payload or None, headers=headers
            )
        return client.build_request(method, self.path, json=payload, headers=headers)

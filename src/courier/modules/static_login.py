"""Login module that answers recovery with a preconfigured token.

Useful for headless deployments (service accounts) and tests where no
login screen can be presented.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, ClassVar

from courier.auth import AuthenticationResponse, ExplicitLoginRequest
from courier.errors import UnauthorizedError
from courier.modules.base import BaseModule
from courier.result import Failure, Success

if TYPE_CHECKING:
    from courier.dispatcher import Dispatcher
    from courier.errors import ResponseError
    from courier.request import InternalRequest
    from courier.result import Result

_TOKEN_ENV_VAR = "COURIER_STATIC_TOKEN"


class StaticLoginModule(BaseModule):
    """Handles ``ExplicitLoginRequest`` without UI.

    The token comes from the class attribute ``token`` or, when unset, from
    the ``COURIER_STATIC_TOKEN`` environment variable at login time.
    """

    capabilities = frozenset({ExplicitLoginRequest})
    token: ClassVar[str | None] = None

    @classmethod
    def with_token(cls, token: str) -> type[StaticLoginModule]:
        """Return a module class bound to *token*."""
        return type(cls.__name__, (cls,), {"token": token})

    async def handle(
        self,
        dispatcher: Dispatcher,  # noqa: ARG002
        request: InternalRequest[Any],  # noqa: ARG002
    ) -> Result[AuthenticationResponse, ResponseError]:
        token = self.token or os.environ.get(_TOKEN_ENV_VAR)
        if not token:
            return Failure(
                UnauthorizedError(
                    "No static token configured",
                    reason="no_static_token",
                    hint=f"Use StaticLoginModule.with_token(...) or set {_TOKEN_ENV_VAR}.",
                )
            )
        return Success(AuthenticationResponse(auth_token=token))

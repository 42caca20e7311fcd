"""Authentication request/response types and recovery extension points."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from courier.errors import ForbiddenError, ResponseError
from courier.request import InternalRequest
from courier.result import Failure, Result

if TYPE_CHECKING:
    from courier.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class ExplicitLoginRequestBody(BaseModel):
    """Credentials for an explicit login.

    Both fields are empty placeholders when the dispatcher triggers recovery;
    the login module is responsible for sourcing real credentials (usually
    by presenting a login screen).
    """

    model_config = ConfigDict(frozen=True)

    email: str | None = None
    password: str | None = Field(default=None, repr=False)


class AuthenticationResponse(BaseModel):
    """Decoded authentication outcome; ``auth_token`` becomes the bearer credential."""

    model_config = ConfigDict(populate_by_name=True)

    auth_token: str = Field(alias="authToken", min_length=1, repr=False)


@dataclass(frozen=True)
class ExplicitLoginRequest(InternalRequest[AuthenticationResponse]):
    """Ask the login-capable module to authenticate the user."""

    data: ExplicitLoginRequestBody = ExplicitLoginRequestBody()


LoginRequestFactory = Callable[[], InternalRequest[AuthenticationResponse]]

#: Called after a 403; a ``Success`` means the remote call should be retried once.
ForbiddenHook = Callable[["Dispatcher"], Awaitable["Result[None, ResponseError]"]]


def default_login_request() -> ExplicitLoginRequest:
    return ExplicitLoginRequest(ExplicitLoginRequestBody(email=None, password=None))


async def forbidden_not_implemented(
    dispatcher: Dispatcher,  # noqa: ARG001
) -> Result[None, ResponseError]:
    """Default 403 hook: no forbidden-recovery strategy is configured."""
    logger.info("Forbidden recovery requested but no hook is configured")
    return Failure(
        ForbiddenError(
            "Forbidden recovery is not implemented",
            reason="forbidden_recovery_not_implemented",
            hint="Pass Dispatcher(forbidden_hook=...) to recover from HTTP 403.",
        )
    )

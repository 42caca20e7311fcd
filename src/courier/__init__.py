"""Courier: typed request dispatch to local modules or a remote backend.

Public API:
    - Dispatcher: routes requests, recovers from 401/403 with one retry
    - InternalRequest / RemoteRequest: typed request kinds
    - Success / Failure: result values
    - ResponseError family: classified failure outcomes
    - Config: remote host and transport configuration
"""

from __future__ import annotations

import logging

from courier.auth import (
    AuthenticationResponse,
    ExplicitLoginRequest,
    ExplicitLoginRequestBody,
    forbidden_not_implemented,
)
from courier.config import Config
from courier.dispatcher import DispatchPhase, Dispatcher
from courier.errors import (
    BadRequestError,
    ConfigurationError,
    CourierError,
    ForbiddenError,
    ModuleContractError,
    OtherResponseError,
    ResponseError,
    ServerError,
    UnauthorizedError,
)
from courier.modules import BaseModule, Module, StaticLoginModule
from courier.request import InternalRequest, RemoteRequest, Request
from courier.result import Failure, Result, Success
from courier.session import Session
from courier.transport import Transport

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("courier-dispatch")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("courier").addHandler(logging.NullHandler())

__all__ = [
    "AuthenticationResponse",
    "BadRequestError",
    "BaseModule",
    "Config",
    "ConfigurationError",
    "CourierError",
    "DispatchPhase",
    "Dispatcher",
    "ExplicitLoginRequest",
    "ExplicitLoginRequestBody",
    "Failure",
    "ForbiddenError",
    "InternalRequest",
    "Module",
    "ModuleContractError",
    "OtherResponseError",
    "RemoteRequest",
    "Request",
    "ResponseError",
    "Result",
    "ServerError",
    "Session",
    "StaticLoginModule",
    "Success",
    "Transport",
    "UnauthorizedError",
    "forbidden_not_implemented",
]

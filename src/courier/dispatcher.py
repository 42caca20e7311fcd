"""The dispatch engine: capability matching, execution and auth recovery.

Every request flows through ``Dispatcher.execute``:

- ``InternalRequest`` -> the registered module(s) whose capability set
  contains the request's concrete type.
- ``RemoteRequest`` -> the transport, against the single configured host.

A 401/403-classified failure triggers the recovery sub-flow (an internal
dispatch of the login request) and, when recovery succeeds, exactly one
retry of the original request. The retry runs with recovery disabled, so a
second authorization failure is surfaced instead of looping. Remote requests
keep the 401 (login) and 403 (forbidden hook) tiers apart: each may retry
once per call.

Phases of one dispatch: ``dispatching -> awaiting_recovery -> retrying ->
done``; the middle two are skipped when the first attempt settles it.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import enum
import logging
from typing import TYPE_CHECKING, Any

from courier._singleflight import singleflight
from courier.auth import (
    AuthenticationResponse,
    default_login_request,
    forbidden_not_implemented,
)
from courier.config import Config
from courier.errors import (
    BadRequestError,
    ForbiddenError,
    ModuleContractError,
    OtherResponseError,
    ResponseError,
    ServerError,
    UnauthorizedError,
    find_response_error,
)
from courier.modules.base import InFlightRegistry, ModuleRegistry
from courier.request import InternalRequest, RemoteRequest
from courier.result import Failure, Result, Success, is_auth_failure
from courier.session import Session
from courier.transport import Transport

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from courier.auth import ForbiddenHook, LoginRequestFactory
    from courier.modules.base import Module, Presenter
    from courier.request import Request

log = logging.getLogger(__name__)

_RECOVERY_KEY = "session"


class DispatchPhase(enum.StrEnum):
    DISPATCHING = "dispatching"
    AWAITING_RECOVERY = "awaiting_recovery"
    RETRYING = "retrying"
    DONE = "done"


def _trace(request: Request[Any], phase: DispatchPhase, **extra: Any) -> None:
    if log.isEnabledFor(logging.DEBUG):
        details = " ".join(f"{k}={v!r}" for k, v in extra.items())
        log.debug("%s %s %s", type(request).__name__, phase.value, details)


def _check_response_type(
    request: Request[Any], response_type: type[Any] | None
) -> Failure[ResponseError] | None:
    """Validate the caller's expected type against the request's declaration."""
    declared = type(request).declared_response_type()
    if declared is None:
        return Failure(
            BadRequestError(
                f"{type(request).__name__} does not declare a response type",
                reason="undeclared_response_type",
                hint="Subclass InternalRequest[Model] or RemoteRequest[Model].",
            )
        )
    if response_type is not None and response_type != declared:
        return Failure(
            BadRequestError(
                f"{type(request).__name__} responds with {declared!r}, "
                f"caller expected {response_type!r}",
                reason="response_type_mismatch",
            )
        )
    return None


class Dispatcher:
    """Routes requests to local modules or the remote transport.

    Example:
        dispatcher = Dispatcher(Config(remote_host="api.example.com"))
        dispatcher.register(UserManagementModule)
        result = await dispatcher.execute(ProfileRequest(), Profile)
        if isinstance(result, Success):
            print(result.value)
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        transport: Transport | None = None,
        session: Session | None = None,
        login_request: LoginRequestFactory = default_login_request,
        forbidden_hook: ForbiddenHook = forbidden_not_implemented,
        present: Presenter | None = None,
        dismiss: Presenter | None = None,
        callback_loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Remote host and transport settings; ignored when
                ``transport`` is given.
            transport: Pre-built transport (tests inject one with a mock
                HTTP transport).
            session: Shared session state; a fresh unauthorized one by default.
            login_request: Builds the request dispatched during recovery.
            forbidden_hook: Called after an HTTP 403 to attempt recovery.
            present: Default presentation callback handed to modules.
            dismiss: Default dismissal callback handed to modules.
            callback_loop: Designated context for ``submit`` completions;
                defaults to the loop running at submit time.
        """
        if transport is None:
            transport = Transport(config if config is not None else Config())
        self.transport = transport
        self.session = session if session is not None else Session()
        self.modules = ModuleRegistry()
        self.in_flight = InFlightRegistry()
        self.present = present
        self.dismiss = dismiss
        self.callback_loop = callback_loop
        self._login_request = login_request
        self._forbidden_hook = forbidden_hook
        self._recovery_lock = asyncio.Lock()
        self._recovery_inflight: dict[str, asyncio.Future[Result[Any, Any]]] = {}
        self._background: set[asyncio.Task[Any]] = set()

    def register(self, module: type[Module]) -> None:
        """Register a module class; its capabilities are read once, here."""
        self.modules.register(module)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def execute[T](
        self,
        request: Request[T],
        response_type: type[T] | None = None,
        *,
        present: Presenter | None = None,
        dismiss: Presenter | None = None,
    ) -> Result[T, ResponseError]:
        """Dispatch *request* and return its final result.

        Args:
            request: An ``InternalRequest`` or ``RemoteRequest`` instance.
            response_type: The type the caller expects; must equal the
                request's declared response type when given.
            present: Presentation callback for this call (internal requests
                only); falls back to the dispatcher default.
            dismiss: Dismissal callback for this call; falls back likewise.

        Returns:
            ``Success(value)`` or ``Failure(ResponseError)``. Exactly one
            result per call.
        """
        return await self._execute(
            request,
            response_type,
            present=present,
            dismiss=dismiss,
            allow_recovery=True,
        )

    def submit[T](
        self,
        request: Request[T],
        on_complete: Callable[[Result[T, ResponseError]], None],
        response_type: type[T] | None = None,
        *,
        present: Presenter | None = None,
        dismiss: Presenter | None = None,
    ) -> asyncio.Task[Result[T, ResponseError]] | concurrent.futures.Future[
        Result[T, ResponseError]
    ]:
        """Dispatch in the background and deliver the result to *on_complete*.

        ``on_complete`` fires exactly once, on the designated callback loop,
        regardless of where the network I/O ran.
        """
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = self.callback_loop or running
        if loop is None:
            raise RuntimeError(
                "submit() needs a running event loop or Dispatcher(callback_loop=...)"
            )

        async def run() -> Result[T, ResponseError]:
            try:
                result = await self.execute(
                    request, response_type, present=present, dismiss=dismiss
                )
            except Exception as exc:
                log.exception("Dispatch of %s raised", type(request).__name__)
                result = Failure(
                    ServerError(
                        "Unhandled exception during dispatch",
                        reason="unhandled_exception",
                        cause=exc,
                    )
                )
            loop.call_soon_threadsafe(on_complete, result)
            return result

        if loop is running:
            task = loop.create_task(run())
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            return task
        return asyncio.run_coroutine_threadsafe(run(), loop)

    async def recover(self) -> Result[AuthenticationResponse, ResponseError]:
        """Re-authenticate and refresh the session credential.

        Concurrent callers share a single login flight and its outcome.
        """
        return await singleflight(
            _RECOVERY_KEY,
            lock=self._recovery_lock,
            inflight=self._recovery_inflight,
            work=self._login,
        )

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> Dispatcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    async def _execute(
        self,
        request: Request[Any],
        response_type: type[Any] | None,
        *,
        present: Presenter | None,
        dismiss: Presenter | None,
        allow_recovery: bool,
    ) -> Result[Any, ResponseError]:
        mismatch = _check_response_type(request, response_type)
        if mismatch is not None:
            _trace(request, DispatchPhase.DONE, reason=mismatch.error.reason)
            return mismatch
        if isinstance(request, RemoteRequest):
            return await self._execute_remote(request, allow_recovery=allow_recovery)
        if isinstance(request, InternalRequest):
            return await self._execute_internal(
                request,
                present=present or self.present,
                dismiss=dismiss or self.dismiss,
                allow_recovery=allow_recovery,
            )
        return Failure(
            BadRequestError(
                f"{type(request).__name__} is neither an internal nor a remote request",
                reason="unknown_request_kind",
            )
        )

    async def _execute_internal(
        self,
        request: InternalRequest[Any],
        *,
        present: Presenter | None,
        dismiss: Presenter | None,
        allow_recovery: bool,
    ) -> Result[Any, ResponseError]:
        modules = self.modules.modules_for(type(request))
        if not modules:
            _trace(request, DispatchPhase.DONE, reason="no_capable_module")
            return Failure(
                OtherResponseError(
                    f"No registered module accepts {type(request).__name__}",
                    status_code=400,
                    reason="no_capable_module",
                )
            )

        _trace(request, DispatchPhase.DISPATCHING, modules=[m.__name__ for m in modules])
        # One module per request type is the expected cardinality. When more
        # match, all run and the first registered one is authoritative.
        outcomes = await asyncio.gather(
            *(self._run_module(m, request, present, dismiss) for m in modules),
            return_exceptions=True,
        )
        for module, discarded in zip(modules[1:], outcomes[1:], strict=True):
            log.warning(
                "Discarding %s from %s for %s; %s is authoritative",
                type(discarded).__name__,
                module.__name__,
                type(request).__name__,
                modules[0].__name__,
                exc_info=discarded if isinstance(discarded, BaseException) else None,
            )
        authoritative = outcomes[0]
        if isinstance(authoritative, BaseException):
            raise authoritative
        result = authoritative

        if not (allow_recovery and is_auth_failure(result)):
            _trace(request, DispatchPhase.DONE, outcome=type(result).__name__)
            return result

        _trace(request, DispatchPhase.AWAITING_RECOVERY)
        recovery = await self.recover()
        if isinstance(recovery, Failure):
            _trace(request, DispatchPhase.DONE, outcome="recovery_failed")
            return recovery

        _trace(request, DispatchPhase.RETRYING)
        return await self._execute_internal(
            request, present=present, dismiss=dismiss, allow_recovery=False
        )

    async def _run_module(
        self,
        module_cls: type[Module],
        request: InternalRequest[Any],
        present: Presenter | None,
        dismiss: Presenter | None,
    ) -> Result[Any, ResponseError]:
        module = module_cls(present, dismiss)
        with self.in_flight.track(module):
            try:
                result = await module.handle(self, request)
            except Exception as exc:
                error = find_response_error(exc)
                if error is None:
                    raise
                return Failure(error)
        if not isinstance(result, (Success, Failure)):
            raise ModuleContractError(
                f"{module_cls.__name__}.handle returned {type(result).__name__}",
                hint="Return Success(value) or Failure(ResponseError(...)).",
            )
        return result

    async def _execute_remote(
        self, request: RemoteRequest[Any], *, allow_recovery: bool
    ) -> Result[Any, ResponseError]:
        allow_recovery = allow_recovery and request.requires_auth
        return await self._send_remote(
            request, recover_auth=allow_recovery, recover_forbidden=allow_recovery
        )

    async def _send_remote(
        self,
        request: RemoteRequest[Any],
        *,
        recover_auth: bool,
        recover_forbidden: bool,
    ) -> Result[Any, ResponseError]:
        """One remote attempt; 401 and 403 each allow a single retry.

        The two tiers are independent: a login recovery does not use up the
        forbidden hook, nor the other way round.
        """
        snapshot = await self.session.snapshot()
        if request.requires_auth and not snapshot.is_authorized:
            if not recover_auth:
                return Failure(UnauthorizedError(reason="session_unauthorized"))
            _trace(request, DispatchPhase.AWAITING_RECOVERY, trigger="unauthorized_session")
            recovery = await self.recover()
            if isinstance(recovery, Failure):
                return self._recovery_failed(request, recovery)
            # The session was just refreshed; another 401 is surfaced as-is.
            return await self._send_remote(
                request, recover_auth=False, recover_forbidden=recover_forbidden
            )

        _trace(request, DispatchPhase.DISPATCHING, method=request.method, path=request.path)
        result = await self.transport.send(
            request,
            type(request).declared_response_type(),
            bearer_token=snapshot.bearer_token,
        )
        if isinstance(result, Success):
            _trace(request, DispatchPhase.DONE, outcome="Success")
            return result

        error = result.error
        if isinstance(error, UnauthorizedError) and recover_auth:
            _trace(request, DispatchPhase.AWAITING_RECOVERY, trigger=401)
            recovery = await self.recover()
            if isinstance(recovery, Failure):
                return self._recovery_failed(request, recovery)
            _trace(request, DispatchPhase.RETRYING, trigger=401)
            return await self._send_remote(
                request, recover_auth=False, recover_forbidden=recover_forbidden
            )

        if isinstance(error, ForbiddenError) and recover_forbidden:
            _trace(request, DispatchPhase.AWAITING_RECOVERY, trigger=403)
            hook_result = await self._forbidden_hook(self)
            if isinstance(hook_result, Failure):
                _trace(request, DispatchPhase.DONE, outcome="forbidden")
                return Failure(
                    ForbiddenError(
                        f"{type(request).__name__} is forbidden",
                        reason=getattr(hook_result.error, "reason", None),
                        hint=getattr(hook_result.error, "hint", None),
                        cause=hook_result.error,
                    )
                )
            _trace(request, DispatchPhase.RETRYING, trigger=403)
            return await self._send_remote(
                request, recover_auth=recover_auth, recover_forbidden=False
            )

        _trace(request, DispatchPhase.DONE, outcome=type(error).__name__)
        return result

    @staticmethod
    def _recovery_failed(
        request: Request[Any], recovery: Failure[Any]
    ) -> Failure[ResponseError]:
        _trace(request, DispatchPhase.DONE, outcome="recovery_failed")
        return Failure(
            UnauthorizedError(
                "Session recovery failed",
                reason="recovery_failed",
                cause=recovery.error,
            )
        )

    async def _login(self) -> Result[AuthenticationResponse, ResponseError]:
        request = self._login_request()
        log.info("Recovering session via %s", type(request).__name__)
        result = await self._execute(
            request,
            AuthenticationResponse,
            present=None,
            dismiss=None,
            allow_recovery=False,
        )
        if isinstance(result, Success) and not isinstance(
            result.value, AuthenticationResponse
        ):
            result = Failure(
                OtherResponseError(
                    f"Login returned {type(result.value).__name__}, "
                    "expected AuthenticationResponse",
                    reason="invalid_authentication_response",
                )
            )

        if isinstance(result, Success):
            token = result.value.auth_token
            await self.session.authorize(token)
            log.info("Session recovered")
        else:
            await self.session.revoke()
            log.info("Session recovery failed: %r", result.error)
        return result

"""Module capability contract.

Public surface area intentionally minimal: feature modules implement
``Module`` (directly or via ``BaseModule``) and declare a static
``capabilities`` set of the concrete ``InternalRequest`` types they service.
The dispatcher looks modules up by request type through ``ModuleRegistry``
and never inspects them beyond this contract.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
import contextlib
import inspect
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from courier.errors import ModuleContractError
from courier.request import InternalRequest

if TYPE_CHECKING:
    from courier.dispatcher import Dispatcher
    from courier.errors import ResponseError
    from courier.result import Result

log = logging.getLogger(__name__)

#: ``present(screen, on_done)`` / ``dismiss(screen, on_done)`` supplied by the UI layer.
Presenter = Callable[[Any, Callable[[], None] | None], None]


@runtime_checkable
class Module(Protocol):
    """Self-contained handler for a closed set of request types.

    A module class is registered once; the dispatcher builds a fresh instance
    for every dispatch and drops it as soon as ``handle`` returns.
    """

    capabilities: ClassVar[frozenset[type[InternalRequest[Any]]]]

    def __init__(self, present: Presenter | None, dismiss: Presenter | None) -> None: ...

    async def handle(
        self, dispatcher: Dispatcher, request: InternalRequest[Any]
    ) -> Result[Any, ResponseError]:
        """Service *request* and return its result."""
        ...


class BaseModule:
    """Convenience base holding the per-invocation presentation callbacks."""

    capabilities: ClassVar[frozenset[type[InternalRequest[Any]]]] = frozenset()

    def __init__(self, present: Presenter | None, dismiss: Presenter | None) -> None:
        self.present = present
        self.dismiss = dismiss

    async def present_screen(self, screen: Any) -> None:
        """Present *screen* and wait until the UI layer signals completion."""
        await self._run_presenter(self.present, screen)

    async def dismiss_screen(self, screen: Any) -> None:
        """Dismiss *screen* and wait until the UI layer signals completion."""
        await self._run_presenter(self.dismiss, screen)

    @staticmethod
    async def _run_presenter(presenter: Presenter | None, screen: Any) -> None:
        if presenter is None:
            return
        loop = asyncio.get_running_loop()
        done = loop.create_future()

        def resolve() -> None:
            if not done.done():
                done.set_result(None)

        def on_done() -> None:
            # The UI layer may signal from any thread.
            loop.call_soon_threadsafe(resolve)

        presenter(screen, on_done)
        await done


def _validate_module(module: type[Any]) -> frozenset[type[InternalRequest[Any]]]:
    name = getattr(module, "__name__", repr(module))
    if not isinstance(module, type):
        raise ModuleContractError(
            f"Expected a module class, got {type(module).__name__}",
            hint="Register the class itself; the dispatcher instantiates it per request.",
        )
    capabilities = getattr(module, "capabilities", None)
    if not isinstance(capabilities, (set, frozenset)) or not capabilities:
        raise ModuleContractError(
            f"{name}.capabilities must be a non-empty set of request types",
            hint="Declare capabilities = frozenset({MyRequest, ...}) on the class.",
        )
    for request_type in capabilities:
        if not (
            isinstance(request_type, type) and issubclass(request_type, InternalRequest)
        ):
            raise ModuleContractError(
                f"{name}.capabilities contains {request_type!r}, which is not an InternalRequest type",
            )
        if request_type.declared_response_type() is None:
            raise ModuleContractError(
                f"{request_type.__name__} does not declare a response type",
                hint="Subclass InternalRequest[ResponseModel] to declare one.",
            )
    if not inspect.iscoroutinefunction(getattr(module, "handle", None)):
        raise ModuleContractError(
            f"{name}.handle must be an async method",
            hint="Define `async def handle(self, dispatcher, request)`.",
        )
    return frozenset(capabilities)


class ModuleRegistry:
    """Capability table: request type -> module classes, in registration order."""

    def __init__(self) -> None:
        self._modules: list[type[Module]] = []
        self._by_request: dict[type[InternalRequest[Any]], list[type[Module]]] = {}

    def register(self, module: type[Module]) -> None:
        capabilities = _validate_module(module)
        if module in self._modules:
            raise ModuleContractError(f"{module.__name__} is already registered")
        self._modules.append(module)
        for request_type in capabilities:
            self._by_request.setdefault(request_type, []).append(module)
        log.debug(
            "Registered module %s for %s",
            module.__name__,
            sorted(t.__name__ for t in capabilities),
        )

    def modules_for(self, request_type: type[Any]) -> tuple[type[Module], ...]:
        """Modules whose capability set contains exactly *request_type*."""
        return tuple(self._by_request.get(request_type, ()))

    def __contains__(self, module: object) -> bool:
        return module in self._modules

    def __iter__(self) -> Iterator[type[Module]]:
        return iter(tuple(self._modules))

    def __len__(self) -> int:
        return len(self._modules)


class InFlightRegistry:
    """Module instances currently executing, keyed by identity."""

    def __init__(self) -> None:
        self._active: dict[int, Module] = {}

    @contextlib.contextmanager
    def track(self, module: Module) -> Iterator[Module]:
        """Hold *module* in the registry for the duration of the block."""
        key = id(module)
        self._active[key] = module
        try:
            yield module
        finally:
            self._active.pop(key, None)

    def __contains__(self, module: object) -> bool:
        return self._active.get(id(module)) is module

    def __len__(self) -> int:
        return len(self._active)

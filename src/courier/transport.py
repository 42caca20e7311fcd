"""HTTP transport: one remote host, one classification step, no retries.

The transport turns a ``RemoteRequest`` into a wire call, performs it and
classifies the outcome into a ``Result``. All retry policy lives in the
dispatcher and the bearer credential is read from the session per call, so
the only state kept here is the pooled client.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError

from courier.errors import OtherResponseError, ResponseError, ServerError
from courier.result import Failure, Result, Success

if TYPE_CHECKING:
    from types import TracebackType

    from courier.config import Config
    from courier.request import RemoteRequest

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


@functools.lru_cache(maxsize=256)
def _adapter_for(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def _media_type(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_success_status(status_code: int) -> bool:
    """Success band is 200..299; 300 is not a success."""
    return 200 <= status_code < 300


def decode_json(body: bytes, response_type: Any) -> Result[Any, ResponseError]:
    """Decode a JSON body into *response_type*, classifying parse failures."""
    try:
        return Success(_adapter_for(response_type).validate_json(body))
    except ValidationError as exc:
        return Failure(
            OtherResponseError(
                f"Could not decode response as {getattr(response_type, '__name__', response_type)}",
                reason="decode_failed",
                cause=exc,
            )
        )


class Transport:
    """Async HTTP client wrapper bound to a single configured host."""

    def __init__(
        self,
        config: Config,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=dict(config.default_headers),
            timeout=config.timeout_s,
            transport=http_transport,
        )

    @property
    def default_headers(self) -> httpx.Headers:
        return self._client.headers

    async def send(
        self,
        request: RemoteRequest[Any],
        response_type: Any,
        *,
        bearer_token: str | None = None,
    ) -> Result[Any, ResponseError]:
        """Perform *request* once and classify the outcome.

        The caller passes the session's current *bearer_token*; the client
        itself keeps no credential between calls.
        """
        http_request = request.build(self._client, bearer_token=bearer_token)
        try:
            response = await self._client.send(http_request)
        except httpx.RequestError as exc:
            logger.debug(
                "Transport failure for %s %s: %s",
                http_request.method,
                http_request.url.path,
                exc,
            )
            return Failure(
                ServerError(
                    f"Transport failure: {type(exc).__name__}",
                    reason="transport_error",
                    cause=exc,
                )
            )
        return self.classify(response, response_type)

    def classify(
        self, response: httpx.Response, response_type: Any
    ) -> Result[Any, ResponseError]:
        status = response.status_code
        if not is_success_status(status):
            return Failure(ResponseError.from_status(status))

        content_type = response.headers.get("Content-Type")
        if _media_type(content_type) != JSON_MEDIA_TYPE:
            logger.warning(
                "Dropping HTTP %s response for %s: content type %r is not %s",
                status,
                response.request.url.path,
                content_type,
                JSON_MEDIA_TYPE,
            )
            return Failure(
                OtherResponseError(
                    f"Expected {JSON_MEDIA_TYPE} response, got {content_type!r}",
                    status_code=status,
                    reason="unexpected_content_type",
                )
            )
        return decode_json(response.content, response_type)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

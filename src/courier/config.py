"""Configuration: frozen Config for the remote host and transport settings."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from courier.errors import ConfigurationError

load_dotenv()

Scheme = Literal["https", "http"]

_HOST_ENV_VAR = "COURIER_REMOTE_HOST"
_SCHEME_ENV_VAR = "COURIER_SCHEME"
_TIMEOUT_ENV_VAR = "COURIER_TIMEOUT_S"

_REDACTED_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie"})


def _env_timeout() -> float:
    raw = os.environ.get(_TIMEOUT_ENV_VAR)
    if raw is None or not raw.strip():
        return 30.0
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{_TIMEOUT_ENV_VAR} must be a number, got {raw!r}",
            hint="Use seconds, e.g. COURIER_TIMEOUT_S=10.",
        ) from exc


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a Dispatcher and its transport.

    Every remote request is sent to the single ``remote_host``. Unset fields
    are auto-resolved from ``COURIER_*`` environment variables.

    Example:
        config = Config(remote_host="api.example.com")
    """

    #: Auto-resolved from ``COURIER_REMOTE_HOST`` when *None*.
    remote_host: str | None = None
    #: Auto-resolved from ``COURIER_SCHEME`` when *None*; defaults to https.
    scheme: Scheme | None = None
    #: Connection-level timeout; auto-resolved from ``COURIER_TIMEOUT_S``.
    timeout_s: float | None = None
    default_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Auto-resolve unset fields from the environment and validate."""
        if self.remote_host is None:
            object.__setattr__(self, "remote_host", os.environ.get(_HOST_ENV_VAR))
        if self.scheme is None:
            object.__setattr__(
                self, "scheme", os.environ.get(_SCHEME_ENV_VAR) or "https"
            )
        if self.timeout_s is None:
            object.__setattr__(self, "timeout_s", _env_timeout())

        host = (self.remote_host or "").strip()
        if not host:
            raise ConfigurationError(
                "remote_host is required",
                hint=f"Set {_HOST_ENV_VAR} or pass Config(remote_host=...).",
            )
        if "://" in host or "/" in host:
            raise ConfigurationError(
                f"remote_host must be a bare host name, got {host!r}",
                hint="Pass the host only (e.g. 'api.example.com'); use scheme= for http/https.",
            )
        object.__setattr__(self, "remote_host", host)

        if self.scheme not in ("https", "http"):
            raise ConfigurationError(
                f"Unknown scheme: {self.scheme!r}",
                hint="Supported schemes: 'https', 'http'",
            )
        if self.timeout_s is None or self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This is the transport's connection-level timeout in seconds.",
            )

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.remote_host}"

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        headers = {
            k: ("[REDACTED]" if k.lower() in _REDACTED_HEADERS else v)
            for k, v in self.default_headers.items()
        }
        return (
            f"Config(remote_host={self.remote_host!r}, scheme={self.scheme!r}, "
            f"timeout_s={self.timeout_s!r}, default_headers={headers!r})"
        )

    __repr__ = __str__

from __future__ import annotations

import pytest

from courier.config import Config
from courier.errors import ConfigurationError

pytestmark = pytest.mark.unit


def test_explicit_values_build_base_url() -> None:
    config = Config(remote_host="api.example.com", scheme="http", timeout_s=5)

    assert config.base_url == "http://api.example.com"
    assert config.timeout_s == 5


def test_unset_fields_resolve_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("COURIER_REMOTE_HOST", "env.example.com")
    monkeypatch.setenv("COURIER_TIMEOUT_S", "2.5")

    config = Config()

    assert config.remote_host == "env.example.com"
    assert config.scheme == "https"
    assert config.timeout_s == 2.5


def test_missing_host_fails_with_hint() -> None:
    with pytest.raises(ConfigurationError) as exc:
        Config()

    assert "remote_host" in str(exc.value)
    assert exc.value.hint is not None
    assert "COURIER_REMOTE_HOST" in exc.value.hint


@pytest.mark.parametrize("host", ["https://api.example.com", "api.example.com/v1"])
def test_host_must_be_bare(host: str) -> None:
    with pytest.raises(ConfigurationError, match="bare host"):
        Config(remote_host=host)


@pytest.mark.parametrize(
    "kwargs",
    [{"scheme": "ftp"}, {"timeout_s": 0}, {"timeout_s": -1.0}],
)
def test_invalid_values_are_rejected(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        Config(remote_host="api.example.com", **kwargs)


def test_non_numeric_timeout_env_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("COURIER_TIMEOUT_S", "soon")

    with pytest.raises(ConfigurationError, match="COURIER_TIMEOUT_S"):
        Config(remote_host="api.example.com")


def test_repr_redacts_credentials() -> None:
    config = Config(
        remote_host="api.example.com",
        default_headers={"Authorization": "Bearer secret", "X-Client": "ios"},
    )

    text = repr(config)

    assert "secret" not in text
    assert "[REDACTED]" in text
    assert "ios" in text

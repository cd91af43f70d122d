from __future__ import annotations

import asyncio

import httpx
import pytest

from genbridge.backends._errors import extract_retry_after_s, wrap_backend_error
from genbridge.errors import (
    GenBridgeError,
    RateLimitError,
    RequestCancelledError,
    TranslationError,
)

pytestmark = pytest.mark.unit


def test_translation_error_structured_metadata() -> None:
    err = TranslationError(
        "boom",
        hint="do this",
        retryable=True,
        status_code=429,
        retry_after_s=2.0,
        provider="openai",
        phase="generate",
        raw_event={"type": "error"},
        backend_stack="trace",
    )

    assert str(err) == "boom"
    assert err.hint == "do this"
    assert err.retryable is True
    assert err.status_code == 429
    assert err.retry_after_s == 2.0
    assert err.provider == "openai"
    assert err.phase == "generate"
    assert err.raw_event == {"type": "error"}
    assert err.backend_stack == "trace"


def test_translation_error_defaults_to_none() -> None:
    err = TranslationError("fail")
    assert err.hint is None
    assert err.retryable is None
    assert err.status_code is None
    assert err.raw_event is None
    assert err.backend_stack is None


def test_subclass_hierarchy() -> None:
    """RateLimitError and RequestCancelledError are catchable as TranslationError."""
    assert issubclass(RateLimitError, TranslationError)
    assert issubclass(RequestCancelledError, TranslationError)
    assert issubclass(TranslationError, GenBridgeError)


def test_wrap_extracts_status_and_retry_after_from_response_headers() -> None:
    class _Resp:
        def __init__(self) -> None:
            self.status_code = 429
            self.headers = {"Retry-After": "2"}

    class _SdkError(Exception):
        def __init__(self) -> None:
            super().__init__("rate limited")
            self.response = _Resp()

    err = wrap_backend_error(
        _SdkError(),
        provider="openai",
        phase="generate",
        allow_network_errors=True,
        message="OpenAI generate failed",
    )

    assert isinstance(err, RateLimitError)
    assert err.status_code == 429
    assert err.retry_after_s == 2.0
    assert err.retryable is True
    assert "429" in str(err)


def test_wrap_enriches_existing_translation_error_without_clobbering() -> None:
    base = TranslationError("bad request", retryable=False, status_code=400)

    wrapped = wrap_backend_error(
        base, provider="anthropic", phase="generate", allow_network_errors=True
    )

    assert wrapped is base
    assert wrapped.status_code == 400
    assert wrapped.retryable is False
    assert wrapped.provider == "anthropic"
    assert wrapped.phase == "generate"


def test_wrap_marks_network_errors_retryable_only_when_allowed() -> None:
    request = httpx.Request("POST", "https://api.example.test")
    exc = httpx.ConnectError("refused", request=request)

    allowed = wrap_backend_error(
        exc, provider="openai", phase="stream", allow_network_errors=True
    )
    denied = wrap_backend_error(
        exc, provider="openai", phase="stream", allow_network_errors=False
    )

    assert allowed.retryable is True
    assert denied.retryable is False


def test_wrap_reraises_cancelled_error() -> None:
    with pytest.raises(asyncio.CancelledError):
        wrap_backend_error(
            asyncio.CancelledError("cancelled"),
            provider="openai",
            phase="stream",
            allow_network_errors=False,
        )


@pytest.mark.parametrize(
    ("provider", "env_var"),
    [("openai", "OPENAI_API_KEY"), ("anthropic", "ANTHROPIC_API_KEY")],
)
def test_auth_failures_hint_at_the_env_var(provider: str, env_var: str) -> None:
    class _SdkError(Exception):
        def __init__(self) -> None:
            super().__init__("unauthorized")
            self.status_code = 401

    err = wrap_backend_error(
        _SdkError(), provider=provider, phase="generate", allow_network_errors=True
    )

    assert err.hint is not None
    assert env_var in err.hint
    assert err.retryable is False


def test_retry_after_attribute_is_preferred() -> None:
    class _SdkError(Exception):
        retry_after = 1.5

    assert extract_retry_after_s(_SdkError()) == 1.5


def test_retry_after_walks_the_cause_chain() -> None:
    class _Resp:
        headers = {"Retry-After": "4"}

    class _Inner(Exception):
        response = _Resp()

    try:
        try:
            raise _Inner("inner")
        except _Inner as inner:
            raise RuntimeError("outer") from inner
    except RuntimeError as outer:
        assert extract_retry_after_s(outer) == 4.0


def test_client_errors_are_not_transient_and_carry_no_hint() -> None:
    class _SdkError(Exception):
        status_code = 400

    err = wrap_backend_error(
        _SdkError("unknown field 'foo'"),
        provider="openai",
        phase="generate",
        allow_network_errors=True,
    )

    assert type(err) is TranslationError
    assert err.retryable is False
    assert err.hint is None
    assert str(err) == "openai generate failed (status=400): unknown field 'foo'"

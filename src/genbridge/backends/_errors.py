"""Backend SDK failures expressed as translation errors.

Whatever a backend SDK raises reaches the caller as ``TranslationError``, the
same type a failed canonical/backend translation produces. HTTP details are
read from the exception chain by attribute, so the OpenAI and Anthropic SDKs
map identically. genbridge never re-issues a request: ``retryable`` and
``retry_after_s`` only describe whether the failure looked transient.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from genbridge.errors import (
    RateLimitError,
    TranslationError,
    _walk_exception_chain,
)

T = TypeVar("T")

# Backend-side conditions that tend to clear on their own.
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

_CREDENTIAL_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def _first_in_chain(
    exc: BaseException, read: Callable[[BaseException], T | None]
) -> T | None:
    for err in _walk_exception_chain(exc):
        value = read(err)
        if value is not None:
            return value
    return None


def _status_of(err: BaseException) -> int | None:
    response = getattr(err, "response", None)
    for value in (
        getattr(err, "status_code", None),
        getattr(err, "status", None),
        getattr(response, "status_code", None),
    ):
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def _delay_of(err: BaseException) -> float | None:
    value = getattr(err, "retry_after", None)
    if isinstance(value, (int, float)) and value >= 0:
        return float(value)
    headers: Any = getattr(getattr(err, "response", None), "headers", None)
    if not hasattr(headers, "get"):
        return None
    header = headers.get("Retry-After")
    if not isinstance(header, str):
        return None
    try:
        seconds = float(header)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def extract_status_code(exc: BaseException) -> int | None:
    """HTTP status of the first exception in the chain that carries one."""
    return _first_in_chain(exc, _status_of)


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Server-suggested delay, from a ``retry_after`` attribute or header."""
    return _first_in_chain(exc, _delay_of)


def _credentials_hint(provider: str, status_code: int | None, cause: str) -> str | None:
    mentions_key = "api key" in cause.lower() or "api_key" in cause.lower()
    if status_code not in {401, 403} and not (status_code == 400 and mentions_key):
        return None
    env_var = _CREDENTIAL_ENV_VARS.get(provider, "the backend API key")
    return (
        f"The {provider} backend rejected the request credentials; "
        f"set {env_var} or pass Config.api_key."
    )


def _looks_transient(
    exc: BaseException,
    status_code: int | None,
    retry_after_s: float | None,
    *,
    allow_network_errors: bool,
) -> bool:
    if retry_after_s is not None or status_code in TRANSIENT_STATUS_CODES:
        return True
    if not allow_network_errors:
        return False
    # httpx.TimeoutException is a RequestError subclass.
    return any(isinstance(e, httpx.RequestError) for e in _walk_exception_chain(exc))


def wrap_backend_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    allow_network_errors: bool,
    message: str | None = None,
    hint: str | None = None,
) -> TranslationError:
    """Express a backend failure as ``TranslationError``.

    ``asyncio.CancelledError`` is re-raised untouched. An existing
    ``TranslationError`` is returned as-is after its missing provider, phase
    and hint are filled in. A 429 status yields ``RateLimitError``.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, TranslationError):
        exc.provider = exc.provider or provider
        exc.phase = exc.phase or phase
        exc.hint = exc.hint or hint
        return exc

    status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)
    cause = str(exc)

    summary = message or f"{provider} {phase} failed"
    if status_code is not None:
        summary += f" (status={status_code})"
    if cause:
        summary += f": {cause}"

    error_type = RateLimitError if status_code == 429 else TranslationError
    return error_type(
        summary,
        hint=hint or _credentials_hint(provider, status_code, cause),
        retryable=_looks_transient(
            exc,
            status_code,
            retry_after_s,
            allow_network_errors=allow_network_errors,
        ),
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )

"""Exception hierarchy for genbridge."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class GenBridgeError(Exception):
    """Base exception for all genbridge errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(GenBridgeError):
    """Configuration validation or resolution failed."""


class UnsupportedOperationError(GenBridgeError):
    """A capability of the content-generation surface is not implemented."""


class MalformedEventError(GenBridgeError):
    """A backend stream event has a missing or unknown kind.

    Handled inside the stream translator, which logs and skips the event.
    A known kind with an invalid payload raises ``TranslationError`` instead.
    """

    def __init__(self, message: str, *, raw_event: Any = None) -> None:
        super().__init__(message)
        self.raw_event = raw_event


class TranslationError(GenBridgeError):
    """A backend call or stream could not be mapped to the canonical shape.

    Backends attach status and retry metadata so callers can decide on their
    own retry policy; nothing in genbridge retries.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
        raw_event: Any = None,
        backend_stack: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase
        self.raw_event = raw_event
        self.backend_stack = backend_stack


class RateLimitError(TranslationError):
    """Rate limit exceeded (HTTP 429)."""


class RequestCancelledError(TranslationError):
    """The caller cancelled the in-flight request via its cancellation token."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, skipping cycles."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)

"""Cooperative cancellation threaded from callers into backend calls."""

from __future__ import annotations

from threading import Lock

from genbridge.errors import RequestCancelledError


class CancellationToken:
    """A cooperative cancellation token with cascading child tokens.

    Backends poll ``raise_if_cancelled`` before issuing a request and between
    stream events. Safe to cancel from another thread.
    """

    def __init__(self, *, parent: CancellationToken | None = None) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._lock = Lock()
        self._children: list[CancellationToken] = []
        if parent is not None:
            parent.link_child(self)

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Reason supplied at cancel time, if any."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation and cascade to children."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    def link_child(self, token: CancellationToken) -> CancellationToken:
        """Link *token* so that cancelling this token cancels it too."""
        with self._lock:
            self._children.append(token)
            should_cancel = self._cancelled
            reason = self._reason
        if should_cancel:
            token.cancel(reason)
        return token

    def child(self) -> CancellationToken:
        """Create and link a child token."""
        return CancellationToken(parent=self)

    def raise_if_cancelled(self, *, provider: str | None = None) -> None:
        """Raise ``RequestCancelledError`` if cancellation was requested."""
        if self._cancelled:
            raise RequestCancelledError(
                self._reason or "request cancelled",
                retryable=False,
                provider=provider,
                phase="cancel",
            )

    def __repr__(self) -> str:
        return (
            f"CancellationToken(cancelled={self._cancelled}, "
            f"reason={self._reason!r}, children={len(self._children)})"
        )


def raise_if_cancelled(
    token: CancellationToken | None, *, provider: str | None = None
) -> None:
    """Check an optional token; no-op when the caller passed none."""
    if token is not None:
        token.raise_if_cancelled(provider=provider)

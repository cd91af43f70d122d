"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: fake SDK clients record the kwargs they
were called with and replay scripted responses or stream chunks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

from genbridge.backends.models import BackendStream


class SequentialIds:
    """Deterministic id factory: ``call_1``, ``call_2``, ..."""

    def __init__(self, prefix: str = "call") -> None:
        self.prefix = prefix
        self.issued = 0

    def __call__(self) -> str:
        self.issued += 1
        return f"{self.prefix}_{self.issued}"


@dataclass
class FakeSdkStream:
    """Async iterable standing in for an SDK streaming response."""

    chunks: list[Any]
    closed: bool = False

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        for chunk in self.chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeCreate:
    """Records ``create(**kwargs)`` calls and returns scripted results."""

    result: Any = None
    error: BaseException | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def last(self) -> dict[str, Any]:
        return self.calls[-1]


def fake_openai_client(create: FakeCreate) -> SimpleNamespace:
    """Shape-compatible stand-in for ``AsyncOpenAI``."""
    client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
        closed=False,
    )

    async def close() -> None:
        client.closed = True

    client.close = close
    return client


def fake_anthropic_client(create: FakeCreate) -> SimpleNamespace:
    """Shape-compatible stand-in for ``AsyncAnthropic``."""
    client = SimpleNamespace(messages=SimpleNamespace(create=create), closed=False)

    async def close() -> None:
        client.closed = True

    client.close = close
    return client


async def scripted_stream(
    events: list[Any],
    *,
    usage: Any = None,
    finish_reason: str | None = "stop",
    provider_metadata: dict[str, Any] | None = None,
) -> BackendStream:
    """Build a ``BackendStream`` replaying *events* then resolving final data."""
    stream: BackendStream

    async def produce() -> AsyncIterator[Any]:
        for event in events:
            if isinstance(event, BaseException):
                raise event
            yield event
        stream.resolve(
            usage=usage,
            finish_reason=finish_reason,
            provider_metadata=provider_metadata,
        )

    stream = BackendStream(produce())
    return stream


async def collect(iterator: AsyncIterator[Any]) -> list[Any]:
    return [item async for item in iterator]

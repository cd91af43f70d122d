"""Mock backend for testing and offline use."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from genbridge.backends.models import (
    BackendCall,
    BackendResult,
    BackendStream,
    BackendUsage,
)
from genbridge.cancellation import raise_if_cancelled


@dataclass
class MockLanguageModel:
    """Mock backend that replays scripted results without API calls.

    With nothing scripted it echoes the last user message, so a generator built
    on it stays informative in offline mode. ``calls`` records every
    ``BackendCall`` for assertions.
    """

    result: BackendResult | None = None
    events: list[Any] | None = None
    stream_usage: BackendUsage | None = None
    stream_finish_reason: str | None = "stop"
    stream_provider_metadata: dict[str, Any] | None = None
    error: BaseException | None = None
    calls: list[BackendCall] = field(default_factory=list)

    @property
    def provider(self) -> str:
        return "mock"

    async def generate_text(self, call: BackendCall) -> BackendResult:
        """Return the scripted result, or echo the last user message."""
        self.calls.append(call)
        raise_if_cancelled(call.cancellation, provider=self.provider)
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        text = _last_user_text(call)
        return BackendResult(
            text=f"echo: {text[:100]}",
            finish_reason="stop",
            usage=BackendUsage(prompt_tokens=10, completion_tokens=10, total_tokens=20),
        )

    async def stream_text(self, call: BackendCall) -> BackendStream:
        """Replay scripted events, or stream the echo text as one delta."""
        self.calls.append(call)
        raise_if_cancelled(call.cancellation, provider=self.provider)
        if self.error is not None:
            raise self.error

        if self.events is not None:
            events = list(self.events)
        else:
            text = f"echo: {_last_user_text(call)[:100]}"
            events = [{"type": "text-delta", "text": text}]

        stream: BackendStream

        async def produce() -> AsyncIterator[Any]:
            for event in events:
                raise_if_cancelled(call.cancellation, provider=self.provider)
                if isinstance(event, BaseException):
                    raise event
                yield event
            stream.resolve(
                usage=self.stream_usage,
                finish_reason=self.stream_finish_reason,
                provider_metadata=self.stream_provider_metadata,
            )

        stream = BackendStream(produce())
        return stream


def _last_user_text(call: BackendCall) -> str:
    for message in reversed(call.messages):
        if message.role == "user" and message.text:
            return message.text
    return ""

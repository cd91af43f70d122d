"""Domain models for the backend transport layer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable

    from genbridge.cancellation import CancellationToken

Role = Literal["user", "assistant", "tool"]
ToolChoice = Literal["auto", "none"]


@dataclass(frozen=True)
class TextPart:
    """Plain text inside a backend message."""

    text: str


@dataclass(frozen=True)
class ToolCallPart:
    """A tool call proposed by the model, embedded in an assistant message."""

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    """The output of one executed tool call."""

    tool_call_id: str
    tool_name: str
    result: Any


ContentPart = TextPart | ToolCallPart | ToolResultPart


@dataclass(frozen=True)
class Message:
    """A backend-facing conversational message.

    Tool results are always carried by their own ``tool`` message.
    """

    role: Role
    content: tuple[ContentPart, ...] = ()

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.content if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.content if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.content if isinstance(p, ToolResultPart)]


@dataclass(frozen=True)
class BackendTool:
    """A tool declaration bridged to plain JSON Schema."""

    description: str
    parameters: dict[str, Any]


@dataclass(frozen=True)
class BackendCall:
    """A unified request payload for a backend generation call."""

    messages: list[Message]
    system: str | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None
    top_p: float | None = None
    tools: dict[str, BackendTool] | None = None
    tool_choice: ToolChoice | None = None
    cancellation: CancellationToken | None = None


@dataclass(frozen=True)
class BackendUsage:
    """Token counts reported by a backend."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True)
class BackendToolCall:
    """A tool call reported in a completed backend result."""

    tool_call_id: str | None
    tool_name: str
    args: dict[str, Any] | None = None


@dataclass(frozen=True)
class BackendToolResult:
    """A tool result the backend reports having executed itself."""

    tool_call_id: str | None
    tool_name: str
    result: Any = None


@dataclass
class BackendResult:
    """A completed (non-streaming) backend generation result.

    ``finish_reason`` uses the backend vocabulary: ``stop``, ``length``,
    ``content-filter``, ``tool-calls``, ``error``, ``other`` or ``unknown``.
    """

    text: str = ""
    tool_calls: list[BackendToolCall] = field(default_factory=list)
    tool_results: list[BackendToolResult] = field(default_factory=list)
    finish_reason: str | None = None
    usage: BackendUsage | None = None
    provider_metadata: dict[str, Any] | None = None


class BackendStream:
    """An in-flight streaming generation.

    Iterating yields raw backend events. Usage, finish reason and provider
    metadata resolve only once the producer has finished, so they must be
    awaited after the events are exhausted.
    """

    def __init__(self, events: AsyncIterable[Any]) -> None:
        self._events = events
        loop = asyncio.get_running_loop()
        self._usage: asyncio.Future[BackendUsage | None] = loop.create_future()
        self._finish_reason: asyncio.Future[str | None] = loop.create_future()
        self._provider_metadata: asyncio.Future[dict[str, Any] | None] = (
            loop.create_future()
        )

    async def __aiter__(self) -> AsyncGenerator[Any, None]:
        events = self._events.__aiter__()
        try:
            async for event in events:
                yield event
        finally:
            # Runs the producer's own cleanup when iteration is abandoned.
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
        # No-op when the producer already resolved.
        self.resolve()

    def resolve(
        self,
        *,
        usage: BackendUsage | None = None,
        finish_reason: str | None = None,
        provider_metadata: dict[str, Any] | None = None,
    ) -> None:
        """Publish final stream data; later calls are ignored."""
        if not self._usage.done():
            self._usage.set_result(usage)
        if not self._finish_reason.done():
            self._finish_reason.set_result(finish_reason)
        if not self._provider_metadata.done():
            self._provider_metadata.set_result(provider_metadata)

    async def usage(self) -> BackendUsage | None:
        return await self._usage

    async def finish_reason(self) -> str | None:
        return await self._finish_reason

    async def provider_metadata(self) -> dict[str, Any] | None:
        return await self._provider_metadata

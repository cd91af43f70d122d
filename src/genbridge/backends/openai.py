"""OpenAI Chat Completions backend (also serves OpenAI-compatible endpoints)."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from genbridge.backends._errors import wrap_backend_error
from genbridge.backends._utils import decode_arguments, stringify_tool_output
from genbridge.backends.models import (
    BackendCall,
    BackendResult,
    BackendStream,
    BackendToolCall,
    BackendUsage,
    Message,
)
from genbridge.cancellation import raise_if_cancelled
from genbridge.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_FINISH_REASONS = {
    "stop": "stop",
    "length": "length",
    "content_filter": "content-filter",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
}


class OpenAIChatModel:
    """OpenAI Chat Completions backend."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        max_tokens: int | None = None,
        client: Any = None,
    ) -> None:
        """Initialize with an API key and the backend model name."""
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self._client: Any = client

    @property
    def provider(self) -> str:
        return "openai"

    def _get_client(self) -> Any:
        """Lazily initialize and return the async OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ConfigurationError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def _create_kwargs(self, call: BackendCall) -> dict[str, Any]:
        """Build chat.completions.create kwargs for *call*."""
        create_kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": _build_messages(call.system, call.messages),
        }
        max_tokens = call.max_output_tokens or self.max_tokens
        if max_tokens is not None:
            create_kwargs["max_tokens"] = max_tokens
        if call.temperature is not None:
            create_kwargs["temperature"] = call.temperature
        if call.top_p is not None:
            create_kwargs["top_p"] = call.top_p
        if call.tools is not None:
            create_kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for name, tool in call.tools.items()
            ]
            if call.tool_choice is not None:
                create_kwargs["tool_choice"] = call.tool_choice
        return create_kwargs

    async def generate_text(self, call: BackendCall) -> BackendResult:
        """Generate a complete chat completion."""
        raise_if_cancelled(call.cancellation, provider=self.provider)
        client = self._get_client()
        try:
            response = await client.chat.completions.create(**self._create_kwargs(call))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=self.provider,
                phase="generate",
                allow_network_errors=True,
                message="OpenAI generate failed",
            ) from e
        return _parse_response(response)

    async def stream_text(self, call: BackendCall) -> BackendStream:
        """Open a streaming chat completion.

        Tool-call argument fragments are accumulated per index and emitted as
        complete ``tool-call`` events once the choice finishes.
        """
        raise_if_cancelled(call.cancellation, provider=self.provider)
        client = self._get_client()
        try:
            response_stream = await client.chat.completions.create(
                **self._create_kwargs(call),
                stream=True,
                stream_options={"include_usage": True},
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=self.provider,
                phase="stream",
                allow_network_errors=True,
                message="OpenAI stream failed",
            ) from e

        stream: BackendStream

        async def produce() -> AsyncIterator[dict[str, Any]]:
            pending: dict[int, dict[str, str]] = {}
            finish_reason: str | None = None
            usage: BackendUsage | None = None
            metadata: dict[str, Any] | None = None
            try:
                async for chunk in response_stream:
                    raise_if_cancelled(call.cancellation, provider=self.provider)
                    if getattr(chunk, "usage", None) is not None:
                        usage, metadata = _parse_usage(chunk.usage)
                    for choice in getattr(chunk, "choices", None) or []:
                        delta = choice.delta
                        if delta is not None and delta.content:
                            yield {"type": "text-delta", "text": delta.content}
                        if delta is not None:
                            _accumulate_tool_deltas(pending, delta.tool_calls)
                        if choice.finish_reason:
                            finish_reason = _normalize_finish_reason(
                                choice.finish_reason
                            )
                            for event in _drain_tool_calls(pending):
                                yield event
                for event in _drain_tool_calls(pending):
                    yield event
            finally:
                close = getattr(response_stream, "close", None)
                if callable(close):
                    await close()
            stream.resolve(
                usage=usage, finish_reason=finish_reason, provider_metadata=metadata
            )

        stream = BackendStream(produce())
        return stream

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()


def _build_messages(
    system: str | None, messages: list[Message]
) -> list[dict[str, Any]]:
    """Convert backend messages to Chat Completions message dicts."""
    out: list[dict[str, Any]] = []
    if system:
        out.append({"role": "system", "content": system})

    for message in messages:
        if message.role == "tool":
            for result in message.tool_results:
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": result.tool_call_id,
                        "content": stringify_tool_output(result.result),
                    }
                )
        elif message.role == "assistant":
            item: dict[str, Any] = {
                "role": "assistant",
                "content": message.text or None,
            }
            if message.tool_calls:
                item["tool_calls"] = [
                    {
                        "id": tc.tool_call_id,
                        "type": "function",
                        "function": {
                            "name": tc.tool_name,
                            "arguments": json.dumps(tc.args),
                        },
                    }
                    for tc in message.tool_calls
                ]
            out.append(item)
        else:
            out.append({"role": "user", "content": message.text})
    return out


def _parse_response(response: Any) -> BackendResult:
    """Parse a ChatCompletion into a BackendResult."""
    choices = getattr(response, "choices", None) or []
    text = ""
    tool_calls: list[BackendToolCall] = []
    finish_reason: str | None = None
    if choices:
        choice = choices[0]
        message = choice.message
        text = getattr(message, "content", None) or ""
        for tc in getattr(message, "tool_calls", None) or []:
            tool_calls.append(
                BackendToolCall(
                    tool_call_id=getattr(tc, "id", None),
                    tool_name=tc.function.name,
                    args=decode_arguments(
                        tc.function.arguments,
                        tool_name=tc.function.name,
                        provider="openai",
                    ),
                )
            )
        finish_reason = _normalize_finish_reason(getattr(choice, "finish_reason", None))

    usage: BackendUsage | None = None
    metadata: dict[str, Any] | None = None
    if getattr(response, "usage", None) is not None:
        usage, metadata = _parse_usage(response.usage)

    return BackendResult(
        text=text,
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        usage=usage,
        provider_metadata=metadata,
    )


def _parse_usage(usage_raw: Any) -> tuple[BackendUsage, dict[str, Any] | None]:
    """Extract token counts and cached prompt tokens from a usage object."""
    usage = BackendUsage(
        prompt_tokens=int(getattr(usage_raw, "prompt_tokens", 0) or 0),
        completion_tokens=int(getattr(usage_raw, "completion_tokens", 0) or 0),
        total_tokens=int(getattr(usage_raw, "total_tokens", 0) or 0),
    )
    details = getattr(usage_raw, "prompt_tokens_details", None)
    cached = getattr(details, "cached_tokens", None) if details is not None else None
    if isinstance(cached, int):
        return usage, {"openai": {"cachedPromptTokens": cached}}
    return usage, None


def _normalize_finish_reason(reason: Any) -> str | None:
    """Map a Chat Completions finish_reason onto the backend vocabulary."""
    if reason is None:
        return None
    return _FINISH_REASONS.get(str(reason).lower(), "unknown")


def _accumulate_tool_deltas(pending: dict[int, dict[str, str]], deltas: Any) -> None:
    """Merge streamed tool-call fragments into *pending*, keyed by index."""
    for tc in deltas or []:
        index = getattr(tc, "index", None)
        entry = pending.setdefault(
            index if isinstance(index, int) else len(pending),
            {"id": "", "name": "", "arguments": ""},
        )
        if getattr(tc, "id", None):
            entry["id"] = tc.id
        function = getattr(tc, "function", None)
        if function is None:
            continue
        if getattr(function, "name", None):
            entry["name"] = function.name
        if getattr(function, "arguments", None):
            entry["arguments"] += function.arguments


def _drain_tool_calls(pending: dict[int, dict[str, str]]) -> list[dict[str, Any]]:
    """Emit accumulated tool calls as events, in index order, and reset."""
    events = [
        {
            "type": "tool-call",
            "tool_call_id": entry["id"] or None,
            "tool_name": entry["name"],
            "args": entry["arguments"],
        }
        for _, entry in sorted(pending.items())
    ]
    pending.clear()
    return events

"""Anthropic Messages API backend."""

from __future__ import annotations

import asyncio
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

_ANTHROPIC_MAX_TOKENS = 8192

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "pause_turn": "stop",
    "max_tokens": "length",
    "tool_use": "tool-calls",
    "refusal": "content-filter",
}


class AnthropicMessagesModel:
    """Anthropic Messages API backend."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_tokens: int = _ANTHROPIC_MAX_TOKENS,
        client: Any = None,
    ) -> None:
        """Initialize with an API key and the backend model name."""
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client: Any = client

    @property
    def provider(self) -> str:
        return "anthropic"

    def _get_client(self) -> Any:
        """Lazily initialize and return the async Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise ConfigurationError(
                    "anthropic package not installed",
                    hint="pip install anthropic",
                ) from e
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    def _create_kwargs(self, call: BackendCall) -> dict[str, Any]:
        """Build messages.create kwargs for *call*."""
        create_kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": _build_messages(call.messages),
            "max_tokens": call.max_output_tokens or self.max_tokens,
        }
        if call.system:
            create_kwargs["system"] = call.system
        if call.temperature is not None:
            create_kwargs["temperature"] = call.temperature
        if call.top_p is not None:
            create_kwargs["top_p"] = call.top_p
        if call.tools is not None:
            create_kwargs["tools"] = [
                {
                    "name": name,
                    "description": tool.description,
                    "input_schema": tool.parameters or {"type": "object"},
                }
                for name, tool in call.tools.items()
            ]
            if call.tool_choice is not None:
                create_kwargs["tool_choice"] = {"type": call.tool_choice}
        return create_kwargs

    async def generate_text(self, call: BackendCall) -> BackendResult:
        """Generate a response using Anthropic's Messages API."""
        raise_if_cancelled(call.cancellation, provider=self.provider)
        client = self._get_client()
        try:
            response = await client.messages.create(**self._create_kwargs(call))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=self.provider,
                phase="generate",
                allow_network_errors=True,
                message="Anthropic generate failed",
            ) from e
        return _parse_response(response)

    async def stream_text(self, call: BackendCall) -> BackendStream:
        """Open a streaming Messages API call over raw stream events."""
        raise_if_cancelled(call.cancellation, provider=self.provider)
        client = self._get_client()
        try:
            raw_stream = await client.messages.create(
                **self._create_kwargs(call), stream=True
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=self.provider,
                phase="stream",
                allow_network_errors=True,
                message="Anthropic stream failed",
            ) from e

        stream: BackendStream

        async def produce() -> AsyncIterator[dict[str, Any]]:
            state = _StreamState()
            try:
                async for event in raw_stream:
                    raise_if_cancelled(call.cancellation, provider=self.provider)
                    for translated in state.consume(event):
                        yield translated
            finally:
                close = getattr(raw_stream, "close", None)
                if callable(close):
                    await close()
            stream.resolve(
                usage=state.usage(),
                finish_reason=state.finish_reason,
                provider_metadata=state.provider_metadata(),
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


class _StreamState:
    """Accumulates one Messages stream into backend events and final usage."""

    def __init__(self) -> None:
        self.input_tokens = 0
        self.output_tokens = 0
        self.cache_read_tokens: int | None = None
        self.finish_reason: str | None = None
        # index -> {"id", "name", "json"} for open tool_use blocks
        self.tool_blocks: dict[int, dict[str, str]] = {}

    def consume(self, event: Any) -> list[dict[str, Any]]:
        event_type = getattr(event, "type", None)
        if event_type == "message_start":
            self._read_usage(getattr(getattr(event, "message", None), "usage", None))
        elif event_type == "content_block_start":
            block = event.content_block
            if getattr(block, "type", None) == "tool_use":
                self.tool_blocks[event.index] = {
                    "id": block.id,
                    "name": block.name,
                    "json": "",
                }
        elif event_type == "content_block_delta":
            delta = event.delta
            delta_type = getattr(delta, "type", None)
            if delta_type == "text_delta" and delta.text:
                return [{"type": "text-delta", "text": delta.text}]
            if delta_type == "input_json_delta" and event.index in self.tool_blocks:
                self.tool_blocks[event.index]["json"] += delta.partial_json or ""
        elif event_type == "content_block_stop":
            block_state = self.tool_blocks.pop(event.index, None)
            if block_state is not None:
                return [
                    {
                        "type": "tool-call",
                        "tool_call_id": block_state["id"],
                        "tool_name": block_state["name"],
                        "args": block_state["json"],
                    }
                ]
        elif event_type == "message_delta":
            stop_reason = getattr(event.delta, "stop_reason", None)
            if stop_reason is not None:
                self.finish_reason = _normalize_stop_reason(stop_reason)
            self._read_usage(getattr(event, "usage", None))
        elif event_type == "message_stop":
            return [{"type": "step-finish", "finish_reason": self.finish_reason}]
        return []

    def _read_usage(self, usage: Any) -> None:
        if usage is None:
            return
        input_tokens = getattr(usage, "input_tokens", None)
        if isinstance(input_tokens, int):
            self.input_tokens = input_tokens
        output_tokens = getattr(usage, "output_tokens", None)
        if isinstance(output_tokens, int):
            self.output_tokens = output_tokens
        cache_read = getattr(usage, "cache_read_input_tokens", None)
        if isinstance(cache_read, int):
            self.cache_read_tokens = cache_read

    def usage(self) -> BackendUsage:
        return BackendUsage(
            prompt_tokens=self.input_tokens,
            completion_tokens=self.output_tokens,
            total_tokens=self.input_tokens + self.output_tokens,
        )

    def provider_metadata(self) -> dict[str, Any] | None:
        if self.cache_read_tokens is None:
            return None
        return {"anthropic": {"cacheReadInputTokens": self.cache_read_tokens}}


def _build_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Build the Anthropic messages list.

    Anthropic requires strict user/assistant role alternation, so consecutive
    same-role messages are merged via ``_append_message``. Tool results travel
    as ``tool_result`` blocks inside user messages.
    """
    out: list[dict[str, Any]] = []
    for message in messages:
        if message.role == "tool":
            _append_message(
                out,
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": result.tool_call_id,
                            "content": stringify_tool_output(result.result),
                        }
                        for result in message.tool_results
                    ],
                },
            )
        elif message.role == "assistant":
            blocks: list[dict[str, Any]] = []
            if message.text:
                blocks.append({"type": "text", "text": message.text})
            for tc in message.tool_calls:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.tool_call_id,
                        "name": tc.tool_name,
                        "input": tc.args,
                    }
                )
            if blocks:
                _append_message(out, {"role": "assistant", "content": blocks})
        elif message.text:
            _append_message(out, {"role": "user", "content": message.text})

    if not out:
        out.append({"role": "user", "content": [{"type": "text", "text": ""}]})
    return out


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match.

    When consecutive messages share a role (e.g. a tool_result user message
    followed by the next user prompt) their content blocks are merged into a
    single message.
    """
    if messages and messages[-1]["role"] == msg["role"]:
        prev = messages[-1]
        prev_content = prev["content"]
        new_content = msg["content"]
        # Normalize both sides to list-of-blocks for merging.
        if isinstance(prev_content, str):
            prev_content = [{"type": "text", "text": prev_content}]
        if isinstance(new_content, str):
            new_content = [{"type": "text", "text": new_content}]
        prev["content"] = prev_content + new_content
    else:
        messages.append(msg)


def _parse_response(response: Any) -> BackendResult:
    """Parse an Anthropic Message response into a BackendResult."""
    text_parts: list[str] = []
    tool_calls: list[BackendToolCall] = []

    for block in getattr(response, "content", []):
        block_type = getattr(block, "type", None)
        if block_type == "text":
            text_parts.append(getattr(block, "text", ""))
        elif block_type == "tool_use":
            tool_calls.append(
                BackendToolCall(
                    tool_call_id=getattr(block, "id", None),
                    tool_name=getattr(block, "name", ""),
                    args=decode_arguments(
                        getattr(block, "input", None),
                        tool_name=getattr(block, "name", ""),
                        provider="anthropic",
                    ),
                )
            )

    usage: BackendUsage | None = None
    metadata: dict[str, Any] | None = None
    usage_raw = getattr(response, "usage", None)
    if usage_raw is not None:
        input_tokens = int(getattr(usage_raw, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage_raw, "output_tokens", 0) or 0)
        usage = BackendUsage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
        cache_read = getattr(usage_raw, "cache_read_input_tokens", None)
        if isinstance(cache_read, int):
            metadata = {"anthropic": {"cacheReadInputTokens": cache_read}}

    return BackendResult(
        text="\n\n".join(text_parts) if text_parts else "",
        tool_calls=tool_calls,
        finish_reason=_normalize_stop_reason(getattr(response, "stop_reason", None)),
        usage=usage,
        provider_metadata=metadata,
    )


def _normalize_stop_reason(stop_reason: Any) -> str | None:
    """Map Anthropic stop_reason onto the backend vocabulary."""
    if stop_reason is None:
        return None
    return _STOP_REASONS.get(str(stop_reason).lower(), "unknown")

"""Anthropic backend characterization tests."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from genbridge.backends.anthropic import AnthropicMessagesModel
from genbridge.backends.models import (
    BackendCall,
    BackendTool,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from genbridge.errors import RateLimitError, TranslationError
from tests.conftest import ANTHROPIC_MODEL
from tests.helpers import (
    FakeCreate,
    FakeSdkStream,
    collect,
    fake_anthropic_client,
)

pytestmark = pytest.mark.contract


def _message(*, content, stop_reason="end_turn", usage=None) -> SimpleNamespace:
    return SimpleNamespace(content=content, stop_reason=stop_reason, usage=usage)


def _backend(create: FakeCreate) -> AnthropicMessagesModel:
    return AnthropicMessagesModel(
        "test-key", ANTHROPIC_MODEL, client=fake_anthropic_client(create)
    )


@pytest.mark.asyncio
async def test_generate_characterizes_request_shape() -> None:
    create = FakeCreate(
        result=_message(content=[SimpleNamespace(type="text", text="ok")])
    )
    call = BackendCall(
        messages=[
            Message("user", (TextPart("Weather in Oslo?"),)),
            Message(
                "assistant",
                (
                    TextPart("Checking."),
                    ToolCallPart("c1", "weather", {"city": "Oslo"}),
                ),
            ),
            Message("tool", (ToolResultPart("c1", "weather", "3C"),)),
            Message("user", (TextPart("Thanks"),)),
        ],
        system="Be brief.",
        tools={
            "weather": BackendTool(
                description="Look up weather",
                parameters={"type": "object", "properties": {}},
            )
        },
        tool_choice="none",
    )

    await _backend(create).generate_text(call)

    sent = create.last
    assert sent["model"] == ANTHROPIC_MODEL
    assert sent["max_tokens"] == 8192
    assert sent["system"] == "Be brief."
    assert sent["tool_choice"] == {"type": "none"}
    assert sent["tools"] == [
        {
            "name": "weather",
            "description": "Look up weather",
            "input_schema": {"type": "object", "properties": {}},
        }
    ]
    # Tool results and the following user prompt merge into one user message.
    assert sent["messages"] == [
        {"role": "user", "content": "Weather in Oslo?"},
        {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Checking."},
                {
                    "type": "tool_use",
                    "id": "c1",
                    "name": "weather",
                    "input": {"city": "Oslo"},
                },
            ],
        },
        {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": "c1", "content": "3C"},
                {"type": "text", "text": "Thanks"},
            ],
        },
    ]


@pytest.mark.asyncio
async def test_generate_parses_tool_use_usage_and_cache() -> None:
    create = FakeCreate(
        result=_message(
            content=[
                SimpleNamespace(type="text", text="Let me look."),
                SimpleNamespace(
                    type="tool_use", id="toolu_1", name="search", input={"q": "x"}
                ),
            ],
            stop_reason="tool_use",
            usage=SimpleNamespace(
                input_tokens=20, output_tokens=5, cache_read_input_tokens=16
            ),
        )
    )

    result = await _backend(create).generate_text(
        BackendCall(messages=[Message("user", (TextPart("find x"),))])
    )

    assert result.text == "Let me look."
    assert result.finish_reason == "tool-calls"
    assert result.tool_calls[0].tool_call_id == "toolu_1"
    assert result.tool_calls[0].args == {"q": "x"}
    assert result.usage is not None
    assert result.usage.total_tokens == 25
    assert result.provider_metadata == {"anthropic": {"cacheReadInputTokens": 16}}


@pytest.mark.asyncio
async def test_generate_rejects_undecodable_tool_input() -> None:
    create = FakeCreate(
        result=_message(
            content=[
                SimpleNamespace(
                    type="tool_use", id="toolu_1", name="search", input='{"q": '
                )
            ],
            stop_reason="tool_use",
        )
    )

    with pytest.raises(TranslationError) as exc_info:
        await _backend(create).generate_text(
            BackendCall(messages=[Message("user", (TextPart("find x"),))])
        )

    assert exc_info.value.raw_event == '{"q": '
    assert exc_info.value.provider == "anthropic"


@pytest.mark.parametrize(
    ("stop_reason", "expected"),
    [
        ("end_turn", "stop"),
        ("max_tokens", "length"),
        ("refusal", "content-filter"),
        ("something_new", "unknown"),
    ],
)
@pytest.mark.asyncio
async def test_stop_reasons_map_to_backend_vocabulary(
    stop_reason: str, expected: str
) -> None:
    create = FakeCreate(result=_message(content=[], stop_reason=stop_reason))

    result = await _backend(create).generate_text(
        BackendCall(messages=[Message("user", (TextPart("Hi"),))])
    )

    assert result.finish_reason == expected


@pytest.mark.asyncio
async def test_generate_wraps_rate_limits() -> None:
    class _SdkError(Exception):
        def __init__(self) -> None:
            super().__init__("rate limited")
            self.status_code = 429

    create = FakeCreate(error=_SdkError())

    with pytest.raises(RateLimitError) as exc_info:
        await _backend(create).generate_text(
            BackendCall(messages=[Message("user", (TextPart("Hi"),))])
        )

    assert exc_info.value.provider == "anthropic"


@pytest.mark.asyncio
async def test_stream_translates_raw_message_events() -> None:
    sdk_stream = FakeSdkStream(
        [
            SimpleNamespace(
                type="message_start",
                message=SimpleNamespace(
                    usage=SimpleNamespace(
                        input_tokens=9, output_tokens=1, cache_read_input_tokens=4
                    )
                ),
            ),
            SimpleNamespace(
                type="content_block_start",
                index=0,
                content_block=SimpleNamespace(type="text", text=""),
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=0,
                delta=SimpleNamespace(type="text_delta", text="On it."),
            ),
            SimpleNamespace(type="content_block_stop", index=0),
            SimpleNamespace(
                type="content_block_start",
                index=1,
                content_block=SimpleNamespace(type="tool_use", id="t1", name="f"),
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=1,
                delta=SimpleNamespace(type="input_json_delta", partial_json='{"a":'),
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=1,
                delta=SimpleNamespace(type="input_json_delta", partial_json=" 1}"),
            ),
            SimpleNamespace(type="content_block_stop", index=1),
            SimpleNamespace(
                type="message_delta",
                delta=SimpleNamespace(stop_reason="tool_use"),
                usage=SimpleNamespace(output_tokens=11),
            ),
            SimpleNamespace(type="message_stop"),
        ]
    )
    create = FakeCreate(result=sdk_stream)

    stream = await _backend(create).stream_text(
        BackendCall(messages=[Message("user", (TextPart("go"),))])
    )
    events = await collect(stream)

    assert create.last["stream"] is True
    assert events == [
        {"type": "text-delta", "text": "On it."},
        {
            "type": "tool-call",
            "tool_call_id": "t1",
            "tool_name": "f",
            "args": '{"a": 1}',
        },
        {"type": "step-finish", "finish_reason": "tool-calls"},
    ]
    assert await stream.finish_reason() == "tool-calls"
    usage = await stream.usage()
    assert usage is not None
    assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (
        9,
        11,
        20,
    )
    assert await stream.provider_metadata() == {
        "anthropic": {"cacheReadInputTokens": 4}
    }
    assert sdk_stream.closed is True


@pytest.mark.asyncio
async def test_empty_history_sends_single_empty_user_message() -> None:
    create = FakeCreate(result=_message(content=[]))

    await _backend(create).generate_text(BackendCall(messages=[]))

    assert create.last["messages"] == [
        {"role": "user", "content": [{"type": "text", "text": ""}]}
    ]
    assert "system" not in create.last
    assert "tools" not in create.last

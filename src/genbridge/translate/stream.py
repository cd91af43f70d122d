"""Backend event streams translated into canonical partial responses.

One pass over the backend's events, one accumulator local to the stream:

- ``text-delta`` yields a partial response holding just that delta.
- ``tool-call`` yields a partial holding just the ``function_call`` part, so
  the caller can start confirmation or execution immediately, and is
  remembered for history reconstruction.
- ``tool-result`` is dropped: executing tools is the caller's job.
- ``error`` aborts the stream with a ``TranslationError``, as does a known
  event kind whose payload is invalid.
- ``step-finish`` and events of unknown kind are skipped without state change.

The backend iterator is closed whenever the stream ends, including on error
and when the caller stops consuming early.

Once the backend events are exhausted, the late-resolving usage, finish reason
and provider metadata are awaited and exactly one final response is yielded.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
import logging
import traceback
from typing import TYPE_CHECKING, Any

from google.genai import types

from genbridge.backends._errors import wrap_backend_error
from genbridge.backends.events import (
    ErrorEvent,
    StepFinishEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
    parse_stream_event,
)
from genbridge.errors import MalformedEventError, TranslationError
from genbridge.translate.finish import map_finish_reason
from genbridge.translate.messages import TOOL_RESULT_PLACEHOLDER
from genbridge.translate.response import (
    build_response,
    call_turn,
    result_turn,
    usage_metadata,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from genbridge.backends.models import BackendStream

logger = logging.getLogger(__name__)


@dataclass
class _StreamState:
    accumulated_text: str = ""
    # Insertion-ordered: history pairs follow the order calls were proposed.
    pending_tool_calls: dict[str, types.FunctionCall] = field(default_factory=dict)


async def translate_stream(
    stream: BackendStream,
    *,
    model_version: str,
    id_factory: Callable[[], str],
    provider: str = "backend",
    log: logging.Logger | logging.LoggerAdapter[Any] | None = None,
) -> AsyncIterator[types.GenerateContentResponse]:
    """Yield canonical partial responses for a backend stream.

    The sequence is finite, forward-only and not restartable. Raises
    ``TranslationError`` when the backend reports an error or fails while
    being iterated, even after content has already been yielded.
    """
    log = log or logger
    state = _StreamState()

    try:
        async with aclosing(stream.__aiter__()) as events:
            async for raw in events:
                try:
                    event = parse_stream_event(raw, provider=provider)
                except MalformedEventError as e:
                    log.warning(
                        "Skipping unrecognized %s stream event: %s", provider, e
                    )
                    continue

                if isinstance(event, TextDeltaEvent):
                    state.accumulated_text += event.text
                    yield build_response(
                        [types.Part(text=event.text)],
                        finish_reason=None,
                        model_version=model_version,
                    )
                elif isinstance(event, ToolCallEvent):
                    function_call = types.FunctionCall(
                        id=event.tool_call_id or id_factory(),
                        name=event.tool_name,
                        args=dict(event.args),
                    )
                    state.pending_tool_calls[function_call.id or ""] = function_call
                    yield build_response(
                        [types.Part(function_call=function_call)],
                        finish_reason=None,
                        model_version=model_version,
                    )
                elif isinstance(event, ToolResultEvent):
                    log.debug(
                        "Discarding %s tool result for %s (id=%s); "
                        "tools run caller-side",
                        provider,
                        event.tool_name,
                        event.tool_call_id,
                    )
                elif isinstance(event, ErrorEvent):
                    raise _error_from_event(event, raw, provider=provider)
                elif isinstance(event, StepFinishEvent):
                    continue

        usage = await stream.usage()
        finish_reason = await stream.finish_reason()
        provider_metadata = await stream.provider_metadata()
    except asyncio.CancelledError:
        raise
    except TranslationError:
        raise
    except Exception as e:
        raise wrap_backend_error(
            e,
            provider=provider,
            phase="stream",
            allow_network_errors=True,
            message=f"{provider} stream failed",
        ) from e

    history: list[types.Content] = [
        call_turn(c) for c in state.pending_tool_calls.values()
    ]
    history.extend(
        result_turn(
            types.FunctionResponse(
                id=c.id,
                name=c.name,
                response={"output": TOOL_RESULT_PLACEHOLDER},
            )
        )
        for c in state.pending_tool_calls.values()
    )

    log.debug(
        "%s stream finished: %d chars, %d tool call(s), finish_reason=%s",
        provider,
        len(state.accumulated_text),
        len(state.pending_tool_calls),
        finish_reason,
    )
    yield build_response(
        [types.Part(text="")],
        finish_reason=map_finish_reason(finish_reason, final=True),
        model_version=model_version,
        usage=usage_metadata(usage, provider_metadata),
        history=history or None,
    )


def _error_from_event(
    event: ErrorEvent, raw: Any, *, provider: str
) -> TranslationError:
    """Build the error raised for a backend ``error`` event."""
    error = event.error
    stack: str | None = None
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        stack = "".join(traceback.format_exception(error))
    elif isinstance(error, dict):
        message = str(error.get("message") or error)
        raw_stack = error.get("stack")
        stack = raw_stack if isinstance(raw_stack, str) else None
    else:
        message = str(error) if error is not None else "unknown error"
    return TranslationError(
        f"{provider} stream reported an error: {message}",
        provider=provider,
        phase="stream",
        raw_event=raw,
        backend_stack=stack,
    )

"""Backend results translated into canonical ``GenerateContentResponse`` values."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from google.genai import types

from genbridge.translate.finish import map_finish_reason

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from genbridge.backends.models import BackendResult, BackendUsage

# Provider metadata paths holding cache-read prompt token counts.
_CACHED_TOKEN_PATHS: tuple[tuple[str, str], ...] = (
    ("anthropic", "cacheReadInputTokens"),
    ("openai", "cachedPromptTokens"),
)


def to_generate_content_response(
    result: BackendResult,
    *,
    model_version: str,
    id_factory: Callable[[], str],
) -> types.GenerateContentResponse:
    """Translate a completed backend result.

    The candidate always carries a leading text part (empty when the backend
    produced no text), followed by one ``function_call`` part per tool call.
    ``automatic_function_calling_history`` lists every call as a ``model``
    turn first, then every backend-executed result as a ``user`` turn, even if
    the backend interleaved them.
    """
    parts: list[types.Part] = [types.Part(text=result.text or "")]
    calls: list[types.FunctionCall] = []
    for call in result.tool_calls:
        function_call = types.FunctionCall(
            id=call.tool_call_id or id_factory(),
            name=call.tool_name,
            args=dict(call.args or {}),
        )
        calls.append(function_call)
        parts.append(types.Part(function_call=function_call))

    history: list[types.Content] = [call_turn(c) for c in calls]
    history.extend(
        result_turn(
            types.FunctionResponse(
                id=r.tool_call_id,
                name=r.tool_name,
                response={"output": r.result},
            )
        )
        for r in result.tool_results
    )

    return build_response(
        parts,
        finish_reason=map_finish_reason(result.finish_reason, final=True),
        model_version=model_version,
        usage=usage_metadata(result.usage, result.provider_metadata),
        history=history or None,
    )


def build_response(
    parts: Sequence[types.Part],
    *,
    finish_reason: types.FinishReason | None,
    model_version: str,
    usage: types.GenerateContentResponseUsageMetadata | None = None,
    history: list[types.Content] | None = None,
) -> types.GenerateContentResponse:
    """Wrap parts in the single-candidate response shape callers expect."""
    candidate = types.Candidate(
        content=types.Content(role="model", parts=list(parts)),
        finish_reason=finish_reason,
        index=0,
    )
    return types.GenerateContentResponse(
        candidates=[candidate],
        usage_metadata=usage,
        model_version=model_version,
        automatic_function_calling_history=history,
    )


def call_turn(function_call: types.FunctionCall) -> types.Content:
    """History turn in which the model proposes one tool call."""
    return types.Content(role="model", parts=[types.Part(function_call=function_call)])


def result_turn(function_response: types.FunctionResponse) -> types.Content:
    """History turn carrying one tool result back to the model."""
    return types.Content(
        role="user", parts=[types.Part(function_response=function_response)]
    )


def usage_metadata(
    usage: BackendUsage | None,
    provider_metadata: dict[str, Any] | None,
) -> types.GenerateContentResponseUsageMetadata:
    """Map backend usage; absent counts become 0, absent cache reads stay ``None``."""
    prompt = (usage.prompt_tokens if usage else None) or 0
    completion = (usage.completion_tokens if usage else None) or 0
    total = (usage.total_tokens if usage else None) or 0
    return types.GenerateContentResponseUsageMetadata(
        prompt_token_count=prompt,
        candidates_token_count=completion,
        total_token_count=total,
        cached_content_token_count=cached_tokens(provider_metadata),
    )


def cached_tokens(provider_metadata: dict[str, Any] | None) -> int | None:
    """Read a provider-specific cache-read token count, if one was reported."""
    if not provider_metadata:
        return None
    for provider, key in _CACHED_TOKEN_PATHS:
        section = provider_metadata.get(provider)
        if not isinstance(section, dict):
            continue
        value = section.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None

"""Canonical google-genai contents normalized into backend messages.

Gemini-style history is a list of role-tagged ``Content`` turns whose parts mix
text, function calls and function responses. Backends want a flat message
list instead: system instructions split out, tool calls inlined into
assistant messages, and every tool result sent as its own ``tool`` message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from google.genai import types

from genbridge.backends.models import (
    ContentPart,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

#: Assistant text sent with tool calls when the model turn had no text.
TOOL_CALL_PLACEHOLDER_TEXT = "I'll use the available tools to help with this request."
#: Tool output used when a function response carries no payload.
TOOL_RESULT_PLACEHOLDER = "Tool execution completed."


def normalize_contents(contents: Any) -> list[types.Content]:
    """Normalize any ``ContentListUnion`` shape into explicit turns.

    A top-level list is normalized item by item; anything else becomes a
    one-turn list. Explicit ``Content`` turns pass through unchanged.
    """
    if contents is None:
        return []
    if isinstance(contents, (list, tuple)):
        return [normalize_content(item) for item in contents]
    return [normalize_content(contents)]


def normalize_content(content: Any) -> types.Content:
    """Normalize one item: a string, a part, a list of parts, or a turn."""
    if isinstance(content, types.Content):
        return content
    if isinstance(content, (list, tuple)):
        return types.Content(role="user", parts=[_to_part(p) for p in content])
    if isinstance(content, str):
        return types.Content(role="user", parts=[types.Part(text=content)])
    if isinstance(content, dict) and "parts" in content:
        return types.Content.model_validate(content)
    return types.Content(role="user", parts=[_to_part(content)])


def contents_to_messages(
    contents: Sequence[types.Content],
    *,
    id_factory: Callable[[], str],
) -> tuple[list[Message], str | None]:
    """Convert explicit turns into backend messages plus extracted system text.

    Returns:
        The message list (never containing a system message) and the
        concatenated text of every ``system`` turn, or ``None`` if there were
        none.
    """
    messages: list[Message] = []
    system_texts: list[str] = []
    # Generated ids for calls that had none, so id-less results can pair up.
    unmatched_ids: dict[str, list[str]] = {}

    for content in contents:
        parts = content.parts or []
        if content.role == "system":
            system_texts.append(_join_text(parts))
            continue

        is_user = content.role == "user"
        text = _join_text(parts)
        calls = [
            _tool_call_part(p.function_call, id_factory, unmatched_ids)
            for p in parts
            if p.function_call is not None
        ]
        results = [
            p.function_response for p in parts if p.function_response is not None
        ]

        if text:
            body: list[ContentPart] = [TextPart(text)]
            if not is_user:
                body.extend(calls)
            role = "user" if is_user else "assistant"
            messages.append(Message(role=role, content=tuple(body)))
        elif not is_user and calls:
            messages.append(
                Message(
                    role="assistant",
                    content=(TextPart(TOOL_CALL_PLACEHOLDER_TEXT), *calls),
                )
            )

        for result in results:
            messages.append(
                Message(
                    role="tool",
                    content=(_tool_result_part(result, id_factory, unmatched_ids),),
                )
            )

    system = "".join(system_texts) if system_texts else None
    return messages, system


def extract_text(content: Any) -> str:
    """Concatenate the text of a ``ContentUnion`` (used for system instructions)."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        return "".join(extract_text(item) for item in content)
    if isinstance(content, types.Part):
        return content.text or ""
    if isinstance(content, types.Content):
        return _join_text(content.parts or [])
    return extract_text(normalize_content(content))


def _to_part(part: Any) -> types.Part:
    if isinstance(part, types.Part):
        return part
    if isinstance(part, str):
        return types.Part(text=part)
    return types.Part.model_validate(part)


def _join_text(parts: Sequence[types.Part]) -> str:
    return "".join(p.text for p in parts if p.text and not p.thought)


def _tool_call_part(
    call: types.FunctionCall,
    id_factory: Callable[[], str],
    unmatched_ids: dict[str, list[str]],
) -> ToolCallPart:
    name = call.name or ""
    call_id = call.id
    if not call_id:
        call_id = id_factory()
        unmatched_ids.setdefault(name, []).append(call_id)
    return ToolCallPart(
        tool_call_id=call_id, tool_name=name, args=dict(call.args or {})
    )


def _tool_result_part(
    response: types.FunctionResponse,
    id_factory: Callable[[], str],
    unmatched_ids: dict[str, list[str]],
) -> ToolResultPart:
    name = response.name or ""
    call_id = response.id
    if not call_id:
        pending = unmatched_ids.get(name)
        call_id = pending.pop(0) if pending else id_factory()
    return ToolResultPart(
        tool_call_id=call_id,
        tool_name=name,
        result=_tool_output(response.response),
    )


def _tool_output(payload: dict[str, Any] | None) -> Any:
    """Pick the tool output out of a function-response payload."""
    if not payload:
        return TOOL_RESULT_PLACEHOLDER
    output = payload["output"] if "output" in payload else payload
    if output is None:
        return TOOL_RESULT_PLACEHOLDER
    return output


"""Shared utilities for backend implementations."""

from __future__ import annotations

import json
from typing import Any

from genbridge.errors import TranslationError


def stringify_tool_output(output: Any) -> str:
    """Render a tool output as the string most backend APIs require."""
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output)
    except (TypeError, ValueError):
        return str(output)


def decode_arguments(
    arguments: Any, *, tool_name: str, provider: str
) -> dict[str, Any]:
    """Decode tool-call arguments sent as a JSON string.

    Empty arguments give ``{}``. Anything that is not a JSON object raises
    ``TranslationError`` carrying the raw arguments.
    """
    if isinstance(arguments, dict):
        return arguments
    if arguments is None or (isinstance(arguments, str) and not arguments.strip()):
        return {}
    try:
        decoded = json.loads(arguments)
    except (TypeError, ValueError) as e:
        raise TranslationError(
            f"{provider} returned invalid arguments for tool call {tool_name!r}: {e}",
            provider=provider,
            phase="generate",
            raw_event=arguments,
        ) from e
    if not isinstance(decoded, dict):
        raise TranslationError(
            f"{provider} returned non-object arguments for tool call "
            f"{tool_name!r}: {type(decoded).__name__}",
            provider=provider,
            phase="generate",
            raw_event=arguments,
        )
    return decoded

"""Generation parameters mapped onto a backend call."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from google.genai import types

from genbridge.backends.models import BackendCall, ToolChoice
from genbridge.translate.messages import (
    contents_to_messages,
    extract_text,
    normalize_contents,
)
from genbridge.translate.schema import bridge_tools

if TYPE_CHECKING:
    from collections.abc import Callable

    from genbridge.cancellation import CancellationToken


def build_backend_call(
    contents: Any,
    config: types.GenerateContentConfig | dict[str, Any] | None,
    *,
    id_factory: Callable[[], str],
    cancellation: CancellationToken | None = None,
) -> BackendCall:
    """Combine messages, system text and bridged tools into one backend call.

    ``tools`` and ``tool_choice`` are left unset when no tool survives
    bridging; some backends reject a tool choice without tools.
    """
    config = _coerce_config(config)
    messages, system_from_turns = contents_to_messages(
        normalize_contents(contents), id_factory=id_factory
    )

    system_parts = [
        text
        for text in (extract_text(config.system_instruction), system_from_turns)
        if text
    ]
    tools = bridge_tools(config.tools)

    return BackendCall(
        messages=messages,
        system="\n\n".join(system_parts) if system_parts else None,
        temperature=config.temperature,
        max_output_tokens=config.max_output_tokens,
        top_p=config.top_p,
        tools=tools,
        tool_choice=tool_choice_for(config) if tools is not None else None,
        cancellation=cancellation,
    )


def tool_choice_for(config: types.GenerateContentConfig) -> ToolChoice:
    """Return ``"none"`` when tool calling is explicitly disabled, else ``"auto"``."""
    afc = config.automatic_function_calling
    if afc is not None and afc.disable:
        return "none"
    calling = config.tool_config.function_calling_config if config.tool_config else None
    if calling is not None and calling.mode == types.FunctionCallingConfigMode.NONE:
        return "none"
    return "auto"


def _coerce_config(
    config: types.GenerateContentConfig | dict[str, Any] | None,
) -> types.GenerateContentConfig:
    if config is None:
        return types.GenerateContentConfig()
    if isinstance(config, dict):
        return types.GenerateContentConfig.model_validate(config)
    return config

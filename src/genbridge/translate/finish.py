"""Backend finish reasons mapped onto the canonical ``FinishReason`` set."""

from __future__ import annotations

from google.genai import types

_FINISH_REASONS: dict[str, types.FinishReason] = {
    "stop": types.FinishReason.STOP,
    "length": types.FinishReason.MAX_TOKENS,
    "content-filter": types.FinishReason.SAFETY,
    # The canonical vocabulary has no "stopped to call a tool" state.
    "tool-calls": types.FinishReason.STOP,
    "error": types.FinishReason.OTHER,
    "other": types.FinishReason.OTHER,
}


def map_finish_reason(reason: str | None, *, final: bool) -> types.FinishReason | None:
    """Translate a backend finish reason.

    While a stream is still open (``final=False``) an absent reason stays
    unset and an unrecognized one becomes ``FINISH_REASON_UNSPECIFIED``. Once
    the response is final, anything unrecognized becomes ``OTHER``.
    """
    if reason is not None:
        mapped = _FINISH_REASONS.get(reason.lower())
        if mapped is not None:
            return mapped
    if final:
        return types.FinishReason.OTHER
    if reason is None:
        return None
    return types.FinishReason.FINISH_REASON_UNSPECIFIED

"""Backend stream events, narrowed at ingress.

Backends emit loosely-shaped events (SDK objects or plain dicts). They are
validated into a discriminated union on ``type`` before the stream translator
sees them, so nothing untyped travels further inward.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from genbridge.errors import MalformedEventError, TranslationError


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class TextDeltaEvent(_Event):
    """An incremental chunk of assistant text."""

    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCallEvent(_Event):
    """A complete tool call proposed by the model."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str | None = None
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _decode_args(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            if not value.strip():
                return {}
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"tool-call args are not valid JSON: {e}") from e
            return decoded
        return value


class ToolResultEvent(_Event):
    """A tool result reported by a backend that executes tools itself."""

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str | None = None
    tool_name: str | None = None
    result: Any = None


class ErrorEvent(_Event):
    """The backend reported an error mid-stream."""

    model_config = ConfigDict(frozen=True, extra="ignore", arbitrary_types_allowed=True)

    type: Literal["error"] = "error"
    error: Any = None


class StepFinishEvent(_Event):
    """Step boundary metadata; carries no content."""

    type: Literal["step-finish"] = "step-finish"
    finish_reason: str | None = None


StreamEvent = Annotated[
    TextDeltaEvent | ToolCallEvent | ToolResultEvent | ErrorEvent | StepFinishEvent,
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)
_EVENT_TYPES = (
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
    ErrorEvent,
    StepFinishEvent,
)
KNOWN_EVENT_KINDS: frozenset[str] = frozenset(
    cls.model_fields["type"].default for cls in _EVENT_TYPES
)


def parse_stream_event(raw: Any, *, provider: str | None = None) -> StreamEvent:
    """Validate *raw* into a known event kind.

    Raises:
        MalformedEventError: The event kind is missing or unknown.
        TranslationError: The kind is known but its payload does not match,
            e.g. a tool call whose arguments are not a JSON object.
    """
    if isinstance(raw, _EVENT_TYPES):
        return raw
    payload = raw if isinstance(raw, dict) else _attributes_of(raw)
    kind = payload.get("type")
    if not isinstance(kind, str) or kind not in KNOWN_EVENT_KINDS:
        raise MalformedEventError(
            f"Unrecognized stream event (type={kind!r})", raw_event=raw
        )
    try:
        return _EVENT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(loc) for loc in first["loc"][1:]) or "event"
        raise TranslationError(
            f"Invalid {kind} stream event: {where}: {first['msg']}",
            provider=provider,
            phase="stream",
            raw_event=raw,
        ) from e


def _attributes_of(raw: Any) -> dict[str, Any]:
    """Read an SDK-style event object into a plain dict."""
    dump = getattr(raw, "model_dump", None)
    if callable(dump):
        result = dump()
        if isinstance(result, dict):
            return result
    return dict(getattr(raw, "__dict__", {}))

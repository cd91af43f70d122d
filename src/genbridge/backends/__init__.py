"""Backend implementations wrapping third-party model SDKs.

SDK-backed modules (``openai``, ``anthropic``) are imported on demand so the
package stays importable without every SDK installed.
"""

from genbridge.backends.base import LanguageModel
from genbridge.backends.mock import MockLanguageModel
from genbridge.backends.models import (
    BackendCall,
    BackendResult,
    BackendStream,
    BackendTool,
    BackendToolCall,
    BackendToolResult,
    BackendUsage,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

__all__ = [
    "BackendCall",
    "BackendResult",
    "BackendStream",
    "BackendTool",
    "BackendToolCall",
    "BackendToolResult",
    "BackendUsage",
    "LanguageModel",
    "Message",
    "MockLanguageModel",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
]

"""Translation between canonical google-genai types and backend shapes."""

from genbridge.translate.finish import map_finish_reason
from genbridge.translate.messages import contents_to_messages, normalize_contents
from genbridge.translate.request import build_backend_call
from genbridge.translate.response import to_generate_content_response
from genbridge.translate.schema import bridge_tools
from genbridge.translate.stream import translate_stream

__all__ = [
    "bridge_tools",
    "build_backend_call",
    "contents_to_messages",
    "map_finish_reason",
    "normalize_contents",
    "to_generate_content_response",
    "translate_stream",
]

"""Backend protocol: minimal interface for wrapped model SDKs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from genbridge.backends.models import BackendCall, BackendResult, BackendStream


@runtime_checkable
class LanguageModel(Protocol):
    """Minimal backend protocol: blocking and streaming text generation."""

    @property
    def provider(self) -> str:
        """Short provider name used in errors and logs."""
        ...

    async def generate_text(self, call: BackendCall) -> BackendResult:
        """Run one generation to completion."""
        ...

    async def stream_text(self, call: BackendCall) -> BackendStream:
        """Open a streaming generation.

        Call-setup failures raise here; failures after the stream opens
        surface while iterating it.
        """
        ...

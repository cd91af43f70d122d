"""Content-generation surface backed by any wrapped ``LanguageModel``.

``BackendContentGenerator`` is a drop-in alternate implementation of the
google-genai style capability (generate, stream, count tokens, embed), so code
written against ``ContentGenerator`` runs unmodified on any backend.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
import uuid

from google.genai import types

from genbridge.backends._errors import wrap_backend_error
from genbridge.errors import UnsupportedOperationError
from genbridge.translate.messages import normalize_contents
from genbridge.translate.request import build_backend_call
from genbridge.translate.response import to_generate_content_response
from genbridge.translate.stream import translate_stream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from genbridge.backends.base import LanguageModel
    from genbridge.cancellation import CancellationToken
    from genbridge.config import Config

logger = logging.getLogger(__name__)

# Rough characters-per-token ratio used for local token estimates.
_CHARS_PER_TOKEN = 4


@runtime_checkable
class ContentGenerator(Protocol):
    """The four-operation capability surface consumed by the conversation engine."""

    async def generate_content(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.GenerateContentConfig | dict[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> types.GenerateContentResponse:
        """Generate one complete response."""
        ...

    async def generate_content_stream(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.GenerateContentConfig | dict[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[types.GenerateContentResponse]:
        """Open a stream of partial responses."""
        ...

    async def count_tokens(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.CountTokensConfig | dict[str, Any] | None = None,
    ) -> types.CountTokensResponse:
        """Count (or estimate) the tokens in *contents*."""
        ...

    async def embed_content(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.EmbedContentConfig | dict[str, Any] | None = None,
    ) -> types.EmbedContentResponse:
        """Embed *contents*."""
        ...


def default_id_factory() -> str:
    """Generate a fallback tool-call id."""
    return f"call_{uuid.uuid4().hex[:8]}"


class BackendContentGenerator:
    """Serve the canonical capability surface from a wrapped backend.

    Holds no per-call state; concurrent calls through one instance are
    independent.
    """

    def __init__(
        self,
        model: LanguageModel,
        default_model_name: str,
        *,
        id_factory: Callable[[], str] | None = None,
        log: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        """Wrap *model*; ``default_model_name`` labels responses lacking a model."""
        self._model = model
        self._default_model_name = default_model_name
        self._id_factory = id_factory or default_id_factory
        self._log = log or logger

    @property
    def backend(self) -> LanguageModel:
        return self._model

    async def generate_content(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.GenerateContentConfig | dict[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> types.GenerateContentResponse:
        """Generate a complete response through the backend."""
        provider = self._model.provider
        try:
            call = build_backend_call(
                contents,
                config,
                id_factory=self._id_factory,
                cancellation=cancellation,
            )
            result = await self._model.generate_text(call)
            return to_generate_content_response(
                result,
                model_version=model or self._default_model_name,
                id_factory=self._id_factory,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=provider,
                phase="generate",
                allow_network_errors=True,
                message=f"{provider} generate failed",
            ) from e

    async def generate_content_stream(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.GenerateContentConfig | dict[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[types.GenerateContentResponse]:
        """Open a backend stream and return its canonical translation.

        Call-setup failures raise when awaited; failures mid-stream raise while
        iterating the returned sequence.
        """
        provider = self._model.provider
        try:
            call = build_backend_call(
                contents,
                config,
                id_factory=self._id_factory,
                cancellation=cancellation,
            )
            stream = await self._model.stream_text(call)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_backend_error(
                e,
                provider=provider,
                phase="stream",
                allow_network_errors=True,
                message=f"{provider} stream failed",
            ) from e

        return translate_stream(
            stream,
            model_version=model or self._default_model_name,
            id_factory=self._id_factory,
            provider=provider,
            log=self._log,
        )

    async def count_tokens(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.CountTokensConfig | dict[str, Any] | None = None,
    ) -> types.CountTokensResponse:
        """Estimate tokens locally at roughly four characters per token.

        Backends expose no portable counting endpoint, so this is an estimate.
        """
        _ = model, config
        text = " ".join(
            part.text
            for content in normalize_contents(contents)
            for part in content.parts or []
            if part.text
        )
        return types.CountTokensResponse(
            total_tokens=math.ceil(len(text) / _CHARS_PER_TOKEN)
        )

    async def embed_content(
        self,
        *,
        model: str | None,
        contents: Any,
        config: types.EmbedContentConfig | dict[str, Any] | None = None,
    ) -> types.EmbedContentResponse:
        """Raise because embeddings are not implemented for wrapped backends."""
        _ = model, contents, config
        raise UnsupportedOperationError(
            f"Embedding is not implemented for the {self._model.provider} backend",
            hint="Use a Gemini client for embed_content.",
        )

    async def aclose(self) -> None:
        """Close the wrapped backend, if it holds resources."""
        aclose = getattr(self._model, "aclose", None)
        if callable(aclose):
            await aclose()


def create_content_generator(
    config: Config,
    *,
    id_factory: Callable[[], str] | None = None,
    log: logging.Logger | None = None,
) -> BackendContentGenerator:
    """Build the configured backend and wrap it in a content generator."""
    return BackendContentGenerator(
        _get_backend(config),
        config.model,
        id_factory=id_factory,
        log=log,
    )


def _get_backend(config: Config) -> LanguageModel:
    """Get the appropriate backend based on configuration."""
    if config.use_mock or config.provider == "mock":
        from genbridge.backends.mock import MockLanguageModel

        return MockLanguageModel()

    if config.provider == "anthropic":
        from genbridge.backends.anthropic import AnthropicMessagesModel

        return AnthropicMessagesModel(
            config.api_key or "",
            config.model,
            max_tokens=config.max_output_tokens,
        )

    from genbridge.backends.openai import OpenAIChatModel

    return OpenAIChatModel(
        config.api_key or "",
        config.model,
        base_url=config.base_url,
        max_tokens=config.max_output_tokens,
    )

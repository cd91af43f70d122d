"""Configuration: frozen Config with explicit provider/model requirements."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Literal

from dotenv import load_dotenv

from genbridge.errors import ConfigurationError

load_dotenv()

ProviderName = Literal["openai", "anthropic", "mock"]

# Provider-specific API key environment variable names
_API_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}
#: Optional override for OpenAI-compatible endpoints.
_BASE_URL_ENV_VAR = "OPENAI_BASE_URL"


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a wrapped backend.

    Provider and model are required; the model name also labels every
    response's ``model_version`` when a call does not name one. API keys are
    auto-resolved from standard environment variables.

    Example:
        config = Config(provider="anthropic", model="claude-sonnet-4-5")
        # API key is automatically resolved from ANTHROPIC_API_KEY
    """

    provider: ProviderName
    model: str
    #: Auto-resolved from ``OPENAI_API_KEY`` or ``ANTHROPIC_API_KEY`` when *None*.
    api_key: str | None = None
    #: OpenAI-compatible endpoint; falls back to ``OPENAI_BASE_URL``.
    base_url: str | None = None
    max_output_tokens: int = 8192
    use_mock: bool = False

    def __post_init__(self) -> None:
        """Auto-resolve API key and validate configuration."""
        if self.provider not in ("openai", "anthropic", "mock"):
            raise ConfigurationError(
                f"Unknown provider: {self.provider!r}",
                hint="Supported providers: 'openai', 'anthropic', 'mock'",
            )
        if not self.model:
            raise ConfigurationError(
                "model is required",
                hint="Pass the backend model name, e.g. Config(model='gpt-4o-mini').",
            )
        if self.max_output_tokens < 1:
            raise ConfigurationError(
                f"max_output_tokens must be ≥ 1, got {self.max_output_tokens}",
                hint="This is the default output token cap sent to the backend.",
            )

        mock = self.use_mock or self.provider == "mock"

        if self.api_key is None and not mock:
            object.__setattr__(
                self, "api_key", os.environ.get(_API_KEY_ENV_VARS[self.provider])
            )
        if self.base_url is None and self.provider == "openai":
            object.__setattr__(self, "base_url", os.environ.get(_BASE_URL_ENV_VAR))

        # Validate: real API calls need a key
        if not mock and not self.api_key:
            env_var = _API_KEY_ENV_VARS[self.provider]
            raise ConfigurationError(
                f"API key required for {self.provider}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(provider={self.provider!r}, model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, use_mock={self.use_mock})"
        )

    __repr__ = __str__

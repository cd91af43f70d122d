"""genbridge: the google-genai content-generation surface over other model SDKs.

Public API:
    - create_content_generator(): Build a generator from a Config
    - BackendContentGenerator: generate, stream, count tokens, embed
    - Config: Configuration dataclass
    - CancellationToken: Cooperative cancellation for in-flight calls
"""

from __future__ import annotations

import logging

from genbridge.cancellation import CancellationToken
from genbridge.config import Config
from genbridge.errors import (
    ConfigurationError,
    GenBridgeError,
    MalformedEventError,
    RateLimitError,
    RequestCancelledError,
    TranslationError,
    UnsupportedOperationError,
)
from genbridge.generator import (
    BackendContentGenerator,
    ContentGenerator,
    create_content_generator,
    default_id_factory,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("genbridge")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("genbridge").addHandler(logging.NullHandler())

__all__ = [
    "BackendContentGenerator",
    "CancellationToken",
    "Config",
    "ConfigurationError",
    "ContentGenerator",
    "GenBridgeError",
    "MalformedEventError",
    "RateLimitError",
    "RequestCancelledError",
    "TranslationError",
    "UnsupportedOperationError",
    "create_content_generator",
    "default_id_factory",
]

"""
maxrouter: local proxy for subscription-billed Messages API access

Translates OpenAI Chat Completions traffic to the native Messages format and
back, including streaming, and applies the system prompt guard.
"""

__version__ = "1.0.0"

from .exceptions import (
    RouterError,
    TranslationError,
    UnsupportedFeatureError,
    UpstreamError,
    StreamProtocolError,
)
from .model_mapper import map_model, load_overrides
from .request_translator import to_native
from .response_translator import to_openai
from .streaming import StreamTranslator, create_stream_translator
from .guard import ensure_required_prefix

__all__ = [
    "RouterError",
    "TranslationError",
    "UnsupportedFeatureError",
    "UpstreamError",
    "StreamProtocolError",
    "map_model",
    "load_overrides",
    "to_native",
    "to_openai",
    "StreamTranslator",
    "create_stream_translator",
    "ensure_required_prefix",
    "__version__",
]

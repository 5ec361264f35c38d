"""Router configuration."""

import os
from dataclasses import dataclass, field
from typing import Optional

VERBOSITY_LEVELS = ("quiet", "minimal", "medium", "maximum")


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("ROUTER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("ROUTER_PORT", "3000")))
    verbosity: str = field(default_factory=lambda: os.getenv("ROUTER_VERBOSITY", "medium"))

    # Auth
    token_file: str = field(default_factory=lambda: os.getenv("ROUTER_TOKEN_FILE", ".oauth-tokens.json"))

    # Models
    model_overrides_file: str = field(
        default_factory=lambda: os.getenv("ROUTER_MODEL_OVERRIDES_FILE", "model-overrides.json"))
    model_override: Optional[str] = field(default_factory=lambda: os.getenv("ROUTER_MODEL_OVERRIDE") or None)
    default_max_tokens: int = field(default_factory=lambda: int(os.getenv("ROUTER_DEFAULT_MAX_TOKENS", "4096")))

    # Upstream
    api_url: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages"))
    upstream_timeout: float = field(default_factory=lambda: float(os.getenv("ROUTER_UPSTREAM_TIMEOUT", "600")))

    def __post_init__(self):
        if self.verbosity not in VERBOSITY_LEVELS:
            raise ValueError(f"Unknown verbosity '{self.verbosity}', expected one of {VERBOSITY_LEVELS}")

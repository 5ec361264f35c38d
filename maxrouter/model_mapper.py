"""
Mapping of client-supplied model names onto native model identifiers
"""

import json
import logging
from types import MappingProxyType
from typing import Mapping, Optional

from .logging_config import log_translation

logger = logging.getLogger(__name__)

LOW_TIER_MODEL = "claude-haiku-4-5"
DEFAULT_MODEL = "claude-sonnet-4-5"

# Case-insensitive substrings that select the low tier
LOW_TIER_PATTERNS = ("nano", "gpt-3.5", "gpt-4o-mini", "gpt-4.1-mini", "haiku")

NATIVE_PREFIX = "claude-"

EMPTY_OVERRIDES: Mapping[str, str] = MappingProxyType({})


def load_overrides(path: Optional[str]) -> Mapping[str, str]:
    """
    Load the per-model override table once at startup.

    A missing, unreadable or malformed file yields an empty table. The result
    is read-only; reloading requires a restart.
    """
    if not path:
        return EMPTY_OVERRIDES

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No model override file at {path}")
        return EMPTY_OVERRIDES
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring model override file {path}: {e}")
        return EMPTY_OVERRIDES

    if not isinstance(raw, dict):
        logger.warning(f"Ignoring model override file {path}: expected a JSON object")
        return EMPTY_OVERRIDES

    overrides = {str(k): str(v) for k, v in raw.items() if isinstance(v, str) and v}
    skipped = len(raw) - len(overrides)
    if skipped:
        logger.warning(f"Skipped {skipped} override(s) without a model name in {path}")

    logger.info(f"Loaded {len(overrides)} model override(s) from {path}")
    return MappingProxyType(overrides)


def map_model(
    requested_model: str,
    overrides: Optional[Mapping[str, str]] = None,
    default_model: Optional[str] = None,
) -> str:
    """
    Resolve a requested model name to a native model identifier.

    Total over all strings: never raises, never returns an empty string.

    Args:
        requested_model: Model name as sent by the client
        overrides: Exact-match override table (see load_overrides)
        default_model: Global override, applied after the table but before heuristics
    """
    requested = requested_model if isinstance(requested_model, str) else str(requested_model or "")

    if overrides and requested in overrides:
        return _resolved(requested, overrides[requested], "override file")

    if default_model:
        return _resolved(requested, default_model, "global override")

    lowered = requested.lower()
    if lowered.startswith(NATIVE_PREFIX):
        return _resolved(requested, requested, "native passthrough")

    for pattern in LOW_TIER_PATTERNS:
        if pattern in lowered:
            return _resolved(requested, LOW_TIER_MODEL, f"low tier '{pattern}'")

    return _resolved(requested, DEFAULT_MODEL, "default")


def _resolved(requested: str, native: str, rule: str) -> str:
    log_translation("model", f"{requested[:80] or '<empty>'} -> {native} ({rule})")
    return native

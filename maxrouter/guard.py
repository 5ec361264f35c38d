"""
System prompt guard: the mandatory prefix must be the first system block
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Opaque upstream requirement for OAuth requests; must match byte for byte
REQUIRED_SYSTEM_PROMPT = "You are Claude Code, Anthropic's official CLI for Claude."


def ensure_required_prefix(request: Dict[str, Any], prefix: str = REQUIRED_SYSTEM_PROMPT) -> Dict[str, Any]:
    """
    Return a native request whose first system block is exactly `prefix`.

    A string `system` becomes a single text block. A request that already
    starts with the prefix block is returned as is, so repeated application
    never double-prefixes. The input dict is not modified.
    """
    system = request.get("system")
    if system is None or system == "" or system == []:
        blocks = []
    elif isinstance(system, str):
        blocks = [{"type": "text", "text": system}]
    else:
        blocks = list(system)

    if blocks and isinstance(blocks[0], dict) and blocks[0].get("type") == "text" and blocks[0].get("text") == prefix:
        if blocks == system:
            return request
        return {**request, "system": blocks}

    logger.debug(f"Prepending required system prompt ({len(blocks)} existing block(s))")
    return {**request, "system": [{"type": "text", "text": prefix}] + blocks}

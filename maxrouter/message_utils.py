"""
Helper functions shared by the request, response and stream translators
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from .models import Usage

logger = logging.getLogger(__name__)

# native stop_reason -> OpenAI finish_reason
FINISH_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


def new_completion_id() -> str:
    """Chat completion id shared by every chunk of one response"""
    return f"chatcmpl-{uuid.uuid4().hex}"


def new_tool_call_id() -> str:
    """Synthetic OpenAI tool call id"""
    return f"call_{uuid.uuid4().hex[:24]}"


def map_finish_reason(stop_reason: Optional[str]) -> Optional[str]:
    """Map a native stop reason; unknown values fail closed to "stop" """
    if stop_reason is None:
        return None
    finish_reason = FINISH_REASONS.get(stop_reason)
    if finish_reason is None:
        logger.warning(f"Unknown stop_reason '{stop_reason}', reporting finish_reason 'stop'")
        return "stop"
    return finish_reason


def map_usage(input_tokens: Optional[int], output_tokens: Optional[int]) -> Usage:
    """OpenAI usage from native token counts; total is always the sum"""
    prompt_tokens = input_tokens or 0
    completion_tokens = output_tokens or 0
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


def content_to_text(content: Union[str, List[Dict[str, Any]], None]) -> str:
    """Flatten OpenAI or native content (string or block list) to plain text"""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
        elif isinstance(block, str):
            parts.append(block)
    return "\n".join(parts)

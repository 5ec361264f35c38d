"""
Native Messages response -> OpenAI chat completion response
"""

import json
import logging
import time
from typing import Any, Dict, Union

from .logging_config import log_translation
from .message_utils import map_finish_reason, map_usage, new_completion_id, new_tool_call_id
from .models import (
    AssistantMessage,
    ChatCompletionResponse,
    Choice,
    FunctionCall,
    NativeResponse,
    ToolCall,
)

logger = logging.getLogger(__name__)


def to_openai(
    response: Union[NativeResponse, Dict[str, Any]],
    requested_model: str,
) -> ChatCompletionResponse:
    """
    Translate a native (non-streaming) response into an OpenAI response.

    The echoed model is the one the client asked for, and id/created are
    generated here rather than copied from the native response.
    """
    if isinstance(response, dict):
        response = NativeResponse.model_validate(response)

    texts = []
    tool_calls = []
    for block in response.content:
        block_type = block.get("type")
        if block_type == "text":
            texts.append(block.get("text") or "")
        elif block_type == "tool_use":
            tool_calls.append(ToolCall(
                id=new_tool_call_id(),
                function=FunctionCall(
                    name=block.get("name") or "",
                    arguments=json.dumps(block.get("input") or {}),
                ),
            ))
        else:
            logger.debug(f"Skipping native content block '{block_type}'")

    content = "".join(texts)
    if tool_calls:
        finish_reason = "tool_calls"
        message = AssistantMessage(content=content or None, tool_calls=tool_calls)
    else:
        finish_reason = map_finish_reason(response.stop_reason)
        message = AssistantMessage(content=content)

    usage = map_usage(response.usage.input_tokens, response.usage.output_tokens)
    log_translation(
        "response",
        f"{len(texts)} text block(s), {len(tool_calls)} tool call(s), "
        f"{response.stop_reason} -> {finish_reason}, {usage.total_tokens} tokens",
    )

    return ChatCompletionResponse(
        id=new_completion_id(),
        created=int(time.time()),
        model=requested_model,
        choices=[Choice(index=0, message=message, finish_reason=finish_reason)],
        usage=usage,
    )

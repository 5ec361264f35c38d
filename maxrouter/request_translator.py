"""
OpenAI chat completion request -> native Messages request
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .exceptions import TranslationError, UnsupportedFeatureError
from .logging_config import log_translation
from .message_utils import content_to_text
from .model_mapper import map_model
from .models import (
    ChatCompletionRequest,
    ChatMessage,
    NativeMessage,
    NativeRequest,
    NativeTool,
    SystemBlock,
    Tool,
)

logger = logging.getLogger(__name__)

SYSTEM_ROLES = ("system", "developer")
SEPARATOR = "\n\n"

# Parameters with no native equivalent; dropped with a warning
DROPPED_PARAMS = ("presence_penalty", "frequency_penalty", "logit_bias", "n", "logprobs", "top_logprobs")


def to_native(
    request: Union[ChatCompletionRequest, Dict[str, Any]],
    overrides: Optional[Mapping[str, str]] = None,
    default_model: Optional[str] = None,
    default_max_tokens: int = 4096,
) -> NativeRequest:
    """
    Translate an OpenAI chat completion request into a native request.

    System messages are hoisted into one system block, consecutive turns of
    the same native role are merged so roles alternate, and tool specs and
    tool calls are reshaped.

    Raises:
        TranslationError: `messages` is absent or empty, or a tool call
            carries arguments that are not a JSON object
        UnsupportedFeatureError: `n` greater than 1
    """
    if isinstance(request, dict):
        request = ChatCompletionRequest.model_validate(request)

    if not request.messages:
        raise TranslationError("'messages' must be a non-empty list", param="messages")

    _check_parameters(request)

    system_texts: List[str] = []
    turns: List[Tuple[str, List[Dict[str, Any]]]] = []
    for message in request.messages:
        if message.role in SYSTEM_ROLES:
            system_texts.append(content_to_text(message.content))
            continue

        # A tool result continues the user turn
        role = "assistant" if message.role == "assistant" else "user"
        blocks = _message_blocks(message)
        if turns and turns[-1][0] == role:
            turns[-1][1].extend(blocks)
        else:
            turns.append((role, blocks))

    if turns and turns[0][0] != "user":
        logger.debug("First non-system message is not a user turn; forwarding unchanged")

    native = NativeRequest(
        model=map_model(request.model, overrides, default_model),
        max_tokens=request.max_tokens or request.max_completion_tokens or default_max_tokens,
        messages=[NativeMessage(role=role, content=_collapse(blocks)) for role, blocks in turns],
        system=[SystemBlock(text=SEPARATOR.join(system_texts))] if system_texts else [],
        temperature=request.temperature,
        top_p=request.top_p,
        stream=request.stream or None,
    )

    if request.stop:
        native.stop_sequences = [request.stop] if isinstance(request.stop, str) else list(request.stop)
    if request.tools:
        native.tools = [_native_tool(tool) for tool in request.tools]
    if request.tool_choice is not None:
        native.tool_choice = _native_tool_choice(request.tool_choice)

    log_translation(
        "request",
        f"{len(request.messages)} message(s) -> {len(native.messages)} turn(s), "
        f"{len(system_texts)} system, {len(native.tools or [])} tool(s)",
    )
    return native


def _check_parameters(request: ChatCompletionRequest) -> None:
    if request.n is not None and request.n > 1:
        raise UnsupportedFeatureError("n", "only a single completion per request is supported")

    for name in DROPPED_PARAMS:
        if getattr(request, name) is not None:
            logger.warning(f"Dropping parameter '{name}': no native equivalent")


def _message_blocks(message: ChatMessage) -> List[Dict[str, Any]]:
    """Native content blocks for one non-system OpenAI message"""
    if message.role == "tool":
        text = content_to_text(message.content)
        if not message.tool_call_id:
            return [{"type": "text", "text": text}]
        return [{"type": "tool_result", "tool_use_id": message.tool_call_id, "content": text}]

    blocks = _content_blocks(message.content)

    for call in message.tool_calls or []:
        try:
            arguments = json.loads(call.function.arguments) if call.function.arguments else {}
        except ValueError as e:
            raise TranslationError(
                f"Tool call '{call.id}' has arguments that are not valid JSON: {e}",
                param="messages",
            )
        if not isinstance(arguments, dict):
            raise TranslationError(f"Tool call '{call.id}' arguments must be a JSON object", param="messages")
        blocks.append({"type": "tool_use", "id": call.id, "name": call.function.name, "input": arguments})

    if message.tool_calls and blocks and blocks[0].get("type") == "text" and not blocks[0]["text"]:
        blocks.pop(0)
    return blocks


def _content_blocks(content: Union[str, List[Dict[str, Any]], None]) -> List[Dict[str, Any]]:
    if content is None:
        return [{"type": "text", "text": ""}]
    if isinstance(content, str):
        return [{"type": "text", "text": content}]

    blocks = []
    for part in content:
        part_type = part.get("type")
        if part_type == "text":
            blocks.append({"type": "text", "text": part.get("text") or ""})
        elif part_type == "image_url":
            image_url = part.get("image_url")
            url = image_url.get("url") if isinstance(image_url, dict) else image_url
            if url:
                blocks.append(_image_block(url))
        else:
            logger.warning(f"Dropping unsupported content part '{part_type}'")
    return blocks or [{"type": "text", "text": ""}]


def _image_block(url: str) -> Dict[str, Any]:
    if url.startswith("data:") and ";base64," in url:
        header, data = url.split(",", 1)
        media_type = header[len("data:"):].split(";", 1)[0]
        return {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}}
    return {"type": "image", "source": {"type": "url", "url": url}}


def _collapse(blocks: List[Dict[str, Any]]) -> Union[str, List[Dict[str, Any]]]:
    """Plain text turns become one string; anything structured stays a block list"""
    if all(block.get("type") == "text" for block in blocks):
        return SEPARATOR.join(block["text"] for block in blocks)
    return [block for block in blocks if block.get("type") != "text" or block["text"]]


def _native_tool(tool: Tool) -> NativeTool:
    function = tool.function
    native = NativeTool(name=function.name, description=function.description)
    if function.parameters is not None:
        native.input_schema = function.parameters
    return native


def _native_tool_choice(tool_choice: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(tool_choice, dict):
        name = (tool_choice.get("function") or {}).get("name")
        if name:
            return {"type": "tool", "name": name}
        logger.warning(f"Unrecognized tool_choice {tool_choice}, using auto")
        return {"type": "auto"}

    if tool_choice == "required":
        return {"type": "any"}
    if tool_choice in ("auto", "none"):
        return {"type": tool_choice}

    logger.warning(f"Unrecognized tool_choice '{tool_choice}', using auto")
    return {"type": "auto"}

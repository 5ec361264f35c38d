"""
Server-Sent Events (SSE) parsing and native -> OpenAI stream translation
"""

import json
import logging
import time
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional

from .exceptions import RouterError, StreamProtocolError, UpstreamError
from .logging_config import log_translation
from .message_utils import map_finish_reason, map_usage, new_completion_id, new_tool_call_id

logger = logging.getLogger(__name__)

DONE = "data: [DONE]\n\n"

MESSAGE_EVENTS = (
    "message_start",
    "content_block_start",
    "content_block_delta",
    "content_block_stop",
    "message_delta",
    "message_stop",
)
IGNORED_DELTAS = ("thinking_delta", "signature_delta", "citations_delta")


def format_sse(payload: Dict[str, Any]) -> str:
    """Frame one JSON payload as an SSE data event"""
    return f"data: {json.dumps(payload)}\n\n"


def create_sse_chunk(
    chat_id: str,
    model: str,
    created: int,
    delta: Dict[str, Any],
    finish_reason: Optional[str] = None,
    usage: Optional[Dict[str, int]] = None,
) -> str:
    """Generate a single SSE chunk in OpenAI format"""
    chunk = {
        "id": chat_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [{
            "index": 0,
            "delta": delta,
            "finish_reason": finish_reason
        }]
    }
    if usage is not None:
        chunk["usage"] = usage
    return format_sse(chunk)


async def parse_sse_lines(lines: AsyncIterable[str]) -> AsyncIterator[Dict[str, Any]]:
    """
    Parse native SSE text lines into event dicts.

    Only `data:` fields are used; the native payload repeats the event name in
    its `type` key.

    Raises:
        StreamProtocolError: a data payload is not valid JSON
    """
    data_lines: List[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield _decode_event("\n".join(data_lines))
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)

    if data_lines:
        yield _decode_event("\n".join(data_lines))


def _decode_event(data: str) -> Dict[str, Any]:
    try:
        event = json.loads(data)
    except ValueError:
        raise StreamProtocolError(f"Unparseable upstream event: {data[:200]}")
    if not isinstance(event, dict):
        raise StreamProtocolError(f"Upstream event is not a JSON object: {data[:200]}")
    return event


class StreamState(str, Enum):
    """Stream translator state."""
    AWAITING_START = "awaiting_start"
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"


class StreamTranslator:
    """
    Translate one native SSE event stream into OpenAI chunks.

    States: AWAITING_START -> STREAMING -> DONE, or ERRORED from either of the
    first two. Text fragments are emitted as they arrive; tool-input JSON
    fragments are buffered per content-block index and emitted whole when the
    block stops; finish_reason and usage are held for the terminal chunk.
    Nothing is emitted after DONE or ERRORED.
    """

    def __init__(self, requested_model: str):
        self.model = requested_model
        self.chat_id = new_completion_id()
        self.created = int(time.time())
        self.state = StreamState.AWAITING_START

        self._blocks: Dict[int, Dict[str, Any]] = {}
        self._tool_calls = 0
        self._stop_reason: Optional[str] = None
        self._input_tokens: Optional[int] = None
        self._output_tokens: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.ERRORED)

    def feed(self, event: Dict[str, Any]) -> List[str]:
        """Consume one native event, return the SSE frames to send in order"""
        if self.finished:
            logger.warning(f"Ignoring upstream event after stream {self.state.value}: {_event_type(event)}")
            return []

        try:
            return self._handle(event)
        except StreamProtocolError as e:
            return self.fail(e)
        except Exception as e:
            logger.exception(f"Unexpected failure translating upstream event: {e}")
            return self.fail(StreamProtocolError(f"Malformed upstream event: {_event_type(event)}"))

    def fail(self, error: RouterError) -> List[str]:
        """Terminate with an OpenAI error chunk; no [DONE] follows"""
        if self.finished:
            return []
        self.state = StreamState.ERRORED
        logger.error(f"Stream {self.chat_id} failed: {error.message}")
        return [format_sse(error.to_openai())]

    async def translate(self, events: AsyncIterable[Dict[str, Any]]) -> AsyncIterator[str]:
        """Drive the state machine over an async event source, yielding SSE frames"""
        try:
            async for event in events:
                for frame in self.feed(event):
                    yield frame
                if self.finished:
                    break
            else:
                for frame in self.fail(StreamProtocolError("Upstream stream ended before message_stop")):
                    yield frame
        except RouterError as e:
            for frame in self.fail(e):
                yield frame
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle(self, event: Dict[str, Any]) -> List[str]:
        if not isinstance(event, dict):
            raise StreamProtocolError("Upstream event is not a JSON object")

        event_type = event.get("type")
        if event_type == "error":
            return self._on_error(event)
        if event_type == "ping":
            return []
        if event_type not in MESSAGE_EVENTS:
            logger.info(f"Ignoring unrecognized upstream event '{event_type}'")
            return []

        if self.state == StreamState.AWAITING_START and event_type != "message_start":
            raise StreamProtocolError(f"Received '{event_type}' before message_start")

        return getattr(self, f"_on_{event_type}")(event)

    def _on_message_start(self, event: Dict[str, Any]) -> List[str]:
        if self.state != StreamState.AWAITING_START:
            raise StreamProtocolError("Received a second message_start")
        self.state = StreamState.STREAMING

        message = _mapping(event, "message")
        self._record_usage(_mapping(message, "usage"))
        return [self._chunk({"role": "assistant", "content": ""})]

    def _on_content_block_start(self, event: Dict[str, Any]) -> List[str]:
        index = _index(event)
        block = _mapping(event, "content_block")
        block_type = block.get("type")

        if block_type == "tool_use":
            self._blocks[index] = {
                "type": "tool_use",
                "name": block.get("name") or "",
                "input": block.get("input") or {},
                "fragments": [],
            }
            return []

        self._blocks[index] = {"type": block_type}
        if block_type == "text" and block.get("text"):
            return [self._chunk({"content": block["text"]})]
        return []

    def _on_content_block_delta(self, event: Dict[str, Any]) -> List[str]:
        index = _index(event)
        block = self._blocks.get(index)
        if block is None:
            raise StreamProtocolError(f"content_block_delta for unknown block index {index}")

        delta = _mapping(event, "delta")
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text") or ""
            return [self._chunk({"content": text})] if text else []

        if delta_type == "input_json_delta":
            if block["type"] != "tool_use":
                raise StreamProtocolError(f"input_json_delta for non-tool block index {index}")
            block["fragments"].append(delta.get("partial_json") or "")
            return []

        if delta_type not in IGNORED_DELTAS:
            logger.debug(f"Ignoring content delta '{delta_type}'")
        return []

    def _on_content_block_stop(self, event: Dict[str, Any]) -> List[str]:
        index = _index(event)
        block = self._blocks.pop(index, None)
        if block is None:
            raise StreamProtocolError(f"content_block_stop for unknown block index {index}")
        if block["type"] == "tool_use":
            return [self._tool_call_chunk(block)]
        return []

    def _on_message_delta(self, event: Dict[str, Any]) -> List[str]:
        stop_reason = _mapping(event, "delta").get("stop_reason")
        if stop_reason is not None:
            self._stop_reason = stop_reason
        self._record_usage(_mapping(event, "usage"))
        return []

    def _on_message_stop(self, event: Dict[str, Any]) -> List[str]:
        frames = []
        # A tool block left open still carries a complete call
        for index in sorted(self._blocks):
            block = self._blocks.pop(index)
            if block["type"] == "tool_use":
                logger.warning(f"Tool block {index} not closed before message_stop; emitting it")
                frames.append(self._tool_call_chunk(block))

        if self._tool_calls:
            finish_reason = "tool_calls"
        else:
            finish_reason = map_finish_reason(self._stop_reason) or "stop"

        usage = map_usage(self._input_tokens, self._output_tokens)
        frames.append(self._chunk({}, finish_reason=finish_reason, usage=usage.model_dump()))
        frames.append(DONE)
        self.state = StreamState.DONE

        log_translation(
            "stream",
            f"{self.chat_id} done, {self._tool_calls} tool call(s), "
            f"{self._stop_reason} -> {finish_reason}, {usage.total_tokens} tokens",
        )
        return frames

    def _on_error(self, event: Dict[str, Any]) -> List[str]:
        error = UpstreamError.from_body(502, event)
        return self.fail(error)

    # ------------------------------------------------------------------

    def _chunk(self, delta: Dict[str, Any], **kwargs) -> str:
        return create_sse_chunk(self.chat_id, self.model, self.created, delta, **kwargs)

    def _tool_call_chunk(self, block: Dict[str, Any]) -> str:
        arguments = "".join(block["fragments"])
        if not arguments:
            arguments = json.dumps(block["input"])

        call = {
            "index": self._tool_calls,
            "id": new_tool_call_id(),
            "type": "function",
            "function": {"name": block["name"], "arguments": arguments},
        }
        self._tool_calls += 1
        return self._chunk({"tool_calls": [call]})

    def _record_usage(self, usage: Dict[str, Any]) -> None:
        if usage.get("input_tokens") is not None:
            self._input_tokens = usage["input_tokens"]
        if usage.get("output_tokens") is not None:
            self._output_tokens = usage["output_tokens"]


def create_stream_translator(requested_model: str) -> StreamTranslator:
    """New per-connection translator echoing the client's requested model"""
    return StreamTranslator(requested_model)


def _event_type(event: Any) -> Any:
    return event.get("type") if isinstance(event, dict) else type(event).__name__


def _mapping(parent: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested object field of an event; absent or null reads as empty"""
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise StreamProtocolError(f"Upstream event field '{key}' is not an object")
    return value


def _index(event: Dict[str, Any]) -> int:
    index = event.get("index")
    if not isinstance(index, int) or isinstance(index, bool):
        raise StreamProtocolError(f"Upstream {event.get('type')} has invalid index {index!r}")
    return index

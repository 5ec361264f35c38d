"""Shared fixtures: a fake upstream and SSE helpers."""

import json
from typing import Any, Dict, List, Optional

import pytest


class FakeUpstream:
    """Stands in for UpstreamClient; records every payload it receives"""

    def __init__(
        self,
        response: Optional[Dict[str, Any]] = None,
        events: Optional[List[Dict[str, Any]]] = None,
        raw: Optional[List[bytes]] = None,
        error: Optional[Exception] = None,
    ):
        self.response = response
        self.events = events or []
        self.raw = raw or []
        self.error = error
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    async def send(self, payload):
        self.requests.append(payload)
        if self.error:
            raise self.error
        return self.response

    async def stream(self, payload):
        self.requests.append(payload)
        if self.error:
            raise self.error
        for event in self.events:
            yield event

    async def stream_raw(self, payload):
        self.requests.append(payload)
        if self.error:
            raise self.error
        for chunk in self.raw:
            yield chunk

    async def close(self):
        self.closed = True


def parse_frames(frames: List[str]) -> List[Any]:
    """Decode `data: ...` frames; the terminator is returned as the string "[DONE]" """
    decoded = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n"), frame
        data = frame[len("data: "):-2]
        decoded.append(data if data == "[DONE]" else json.loads(data))
    return decoded


def split_sse(body: str) -> List[str]:
    """Split a streamed response body back into frames"""
    return [part + "\n\n" for part in body.split("\n\n") if part]


def native_text_events(*fragments: str, stop_reason: str = "end_turn",
                       input_tokens: int = 12, output_tokens: int = 7) -> List[Dict[str, Any]]:
    events = [
        {"type": "message_start", "message": {
            "id": "msg_1", "type": "message", "role": "assistant", "content": [],
            "model": "claude-sonnet-4-5", "stop_reason": None,
            "usage": {"input_tokens": input_tokens, "output_tokens": 1},
        }},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "ping"},
    ]
    for fragment in fragments:
        events.append({"type": "content_block_delta", "index": 0,
                       "delta": {"type": "text_delta", "text": fragment}})
    events += [
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": stop_reason, "stop_sequence": None},
         "usage": {"output_tokens": output_tokens}},
        {"type": "message_stop"},
    ]
    return events


@pytest.fixture
def native_response():
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-5",
        "content": [{"type": "text", "text": "Hello there"}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }

"""
Response chunk types yielded by streaming chat clients.

Known kinds are modelled explicitly. Anything else is wrapped in
UnknownChunk so consumers can skip kinds they don't understand
without the stream breaking.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Chunk(BaseModel):
    model_config = ConfigDict(frozen=True)


class Usage(_Chunk):
    input_tokens: int = 0
    output_tokens: int = 0


class StartChunk(_Chunk):
    type: Literal["start"] = "start"


class TextStartChunk(_Chunk):
    type: Literal["text_start"] = "text_start"


class TextDeltaChunk(_Chunk):
    type: Literal["text_delta"] = "text_delta"
    delta: str


class TextEndChunk(_Chunk):
    type: Literal["text_end"] = "text_end"
    content: str = ""


class ThinkingDeltaChunk(_Chunk):
    type: Literal["thinking_delta"] = "thinking_delta"
    delta: str


class ToolCallDeltaChunk(_Chunk):
    type: Literal["toolcall_delta"] = "toolcall_delta"
    index: int = 0
    name: Optional[str] = None
    delta: str = ""


class DoneChunk(_Chunk):
    type: Literal["done"] = "done"
    reason: str = "stop"  # "stop" | "length" | "toolUse"
    usage: Optional[Usage] = None


class UnknownChunk(_Chunk):
    """Any chunk kind not listed above; payload keeps the raw fields."""
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


ResponseChunk = Union[
    StartChunk,
    TextStartChunk,
    TextDeltaChunk,
    TextEndChunk,
    ThinkingDeltaChunk,
    ToolCallDeltaChunk,
    DoneChunk,
    UnknownChunk,
]

KNOWN_CHUNKS: dict[str, type[_Chunk]] = {
    "start": StartChunk,
    "text_start": TextStartChunk,
    "text_delta": TextDeltaChunk,
    "text_end": TextEndChunk,
    "thinking_delta": ThinkingDeltaChunk,
    "toolcall_delta": ToolCallDeltaChunk,
    "done": DoneChunk,
}


def parse_chunk(data: dict) -> ResponseChunk:
    """
    Build a chunk from a dict with a "type" key.

    Unknown types become UnknownChunk. Known types with bad fields raise
    pydantic.ValidationError.
    """
    kind = str(data.get("type", ""))
    chunk_cls = KNOWN_CHUNKS.get(kind)
    if chunk_cls is None:
        payload = {k: v for k, v in data.items() if k != "type"}
        return UnknownChunk(type=kind, payload=payload)
    return chunk_cls.model_validate(data)

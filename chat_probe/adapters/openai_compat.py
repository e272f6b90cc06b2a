"""
OpenAICompatClient - streams chat completions from OpenAI-compatible servers.

Works with Ollama (/v1), LM Studio, vLLM and anything else that speaks
the /chat/completions SSE protocol. Raw SSE deltas are translated into
typed ResponseChunk values.
"""

import json
import logging
from typing import AsyncGenerator, AsyncIterator, Optional

import httpx

from chat_probe.adapters.schema import (
    DoneChunk,
    ResponseChunk,
    StartChunk,
    TextDeltaChunk,
    TextEndChunk,
    TextStartChunk,
    ThinkingDeltaChunk,
    ToolCallDeltaChunk,
    Usage,
)
from chat_probe.config import (
    DEFAULT_TIMEOUT_SECONDS,
    OPENAI_COMPLETIONS_API,
    ChatContext,
    Model,
)
from chat_probe.errors import ProviderError, StreamCancelled

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "toolUse",
    "function_call": "toolUse",
}


def _extract_error_message(body: bytes) -> str:
    """Pull a readable message out of an error body."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode(errors="replace")[:500]
    if isinstance(data, dict):
        error = data.get("error", data)
        if isinstance(error, dict):
            return str(error.get("message") or error)[:500]
        return str(error)[:500]
    return str(data)[:500]


def _parse_usage(data: dict) -> Optional[Usage]:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        return None
    return Usage(
        input_tokens=usage.get("prompt_tokens", 0) or 0,
        output_tokens=usage.get("completion_tokens", 0) or 0,
    )


def _first_choice(event: dict) -> Optional[dict]:
    """
    Return the first choice of a parsed event, or None if it has none.

    Raises ValueError when choices, the choice, its delta or a tool call
    has the wrong shape.
    """
    choices = event.get("choices") or []
    if not isinstance(choices, list):
        raise ValueError("choices is not a list")
    if not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        raise ValueError("choice is not an object")
    if not isinstance(choice.get("finish_reason") or "", str):
        raise ValueError("finish_reason is not a string")

    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        raise ValueError("delta is not an object")
    for key in ("content", "reasoning_content", "reasoning"):
        if not isinstance(delta.get(key) or "", str):
            raise ValueError(f"{key} is not a string")

    tool_calls = delta.get("tool_calls") or []
    if not isinstance(tool_calls, list):
        raise ValueError("tool_calls is not a list")
    for tc in tool_calls:
        if not isinstance(tc, dict) or not isinstance(tc.get("function") or {}, dict):
            raise ValueError("tool call is not an object")
    return choice


# ─────────────────────────────────────────────────────────────────────
# STREAM HANDLE
# ─────────────────────────────────────────────────────────────────────

class ChatStream:
    """
    Single-pass async iterator over response chunks.

    The only suspend point is __anext__. Once cancelled, every later
    __anext__ raises StreamCancelled. A finished stream cannot restart.
    """

    def __init__(self, source: AsyncGenerator[ResponseChunk, None]):
        self._source = source
        self._cancelled = False
        self._finished = False
        self._in_flight = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __aiter__(self) -> AsyncIterator[ResponseChunk]:
        return self

    async def __anext__(self) -> ResponseChunk:
        if self._cancelled:
            raise StreamCancelled("Stream was cancelled")
        if self._finished:
            raise StopAsyncIteration

        self._in_flight = True
        try:
            chunk = await self._source.__anext__()
        except BaseException:
            self._finished = True
            raise
        finally:
            self._in_flight = False

        # cancel() arrived while this step was waiting
        if self._cancelled:
            await self._source.aclose()
            raise StreamCancelled("Stream was cancelled")
        return chunk

    async def cancel(self) -> None:
        """
        Abort the stream and release the HTTP connection.

        If another task is awaiting a step, the source is closed when that
        step returns and the step raises StreamCancelled instead.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if not self._in_flight:
            await self._source.aclose()

    aclose = cancel


# ─────────────────────────────────────────────────────────────────────
# CLIENT
# ─────────────────────────────────────────────────────────────────────

class OpenAICompatClient:
    """
    ChatStreamer implementation for OpenAI-compatible servers.

    Holds no connection state; each stream() opens its own httpx client.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds

    def stream(
        self,
        model: Model,
        context: ChatContext,
        api_key: Optional[str] = None,
    ) -> ChatStream:
        """Start streaming. Nothing is sent until the first step."""
        if model.api != OPENAI_COMPLETIONS_API:
            raise ProviderError(
                f"Unsupported api '{model.api}' for {model.key}"
            )
        return ChatStream(self._stream_chunks(model, context, api_key))

    async def _stream_chunks(
        self,
        model: Model,
        context: ChatContext,
        api_key: Optional[str],
    ) -> AsyncGenerator[ResponseChunk, None]:
        payload = {
            "model": model.id,
            "messages": context.to_openai_messages(),
            "max_tokens": model.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        url = f"{model.base_url.rstrip('/')}/chat/completions"
        logger.debug(f"POST {url} model={model.id}")

        text_parts: list[str] = []
        finish_reason: Optional[str] = None
        usage: Optional[Usage] = None

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                async with client.stream("POST", url, json=payload, headers=headers) as response:
                    if response.status_code >= 400:
                        error_body = await response.aread()
                        msg = _extract_error_message(error_body)
                        raise ProviderError(f"Provider error for {model.key}: {msg}")

                    yield StartChunk()

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[5:].strip()
                        if data == "[DONE]":
                            break
                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError as e:
                            raise ProviderError(
                                f"Malformed chunk from {model.key}: {data[:200]}"
                            ) from e
                        if not isinstance(event, dict):
                            raise ProviderError(
                                f"Malformed chunk from {model.key}: {data[:200]}"
                            )

                        if "error" in event:
                            msg = _extract_error_message(data.encode())
                            raise ProviderError(f"Provider error for {model.key}: {msg}")

                        # pydantic's ValidationError is a ValueError
                        try:
                            usage = _parse_usage(event) or usage
                            choice = _first_choice(event)
                            tool_chunks = [
                                ToolCallDeltaChunk(
                                    index=tc.get("index") or 0,
                                    name=(tc.get("function") or {}).get("name") or None,
                                    delta=(tc.get("function") or {}).get("arguments") or "",
                                )
                                for tc in ((choice or {}).get("delta") or {}).get("tool_calls") or []
                            ]
                        except ValueError as e:
                            raise ProviderError(
                                f"Malformed chunk from {model.key}: {data[:200]}"
                            ) from e
                        if choice is None:
                            continue
                        delta = choice.get("delta") or {}

                        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
                        if reasoning:
                            yield ThinkingDeltaChunk(delta=reasoning)

                        content = delta.get("content")
                        if content:
                            if not text_parts:
                                yield TextStartChunk()
                            text_parts.append(content)
                            yield TextDeltaChunk(delta=content)

                        for tool_chunk in tool_chunks:
                            yield tool_chunk

                        if choice.get("finish_reason"):
                            finish_reason = choice["finish_reason"]

        except httpx.TimeoutException as e:
            raise ProviderError(f"Timeout streaming from {model.key}: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"HTTP error streaming from {model.key}: {e}") from e

        if text_parts:
            yield TextEndChunk(content="".join(text_parts))
        yield DoneChunk(
            reason=_FINISH_REASONS.get(finish_reason or "stop", finish_reason or "stop"),
            usage=usage,
        )


def stream_chat(
    model: Model,
    context: ChatContext,
    api_key: Optional[str] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> ChatStream:
    """Convenience wrapper: stream one request with a default client."""
    return OpenAICompatClient(timeout_seconds=timeout_seconds).stream(model, context, api_key)

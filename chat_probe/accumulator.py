"""
ResponseAccumulator - folds a chunk stream into exactly one outcome.

Only text_delta chunks contribute to the text and the chunk count.
Every other kind, including ones this module has never heard of, is
observed and skipped.
"""

import logging
import traceback
from typing import AsyncIterable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from chat_probe.adapters.schema import ResponseChunk, TextDeltaChunk

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], None]


class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    text: str
    chunk_count: int


class Failure(BaseModel):
    """
    A request that raised mid-stream.

    partial_text holds whatever arrived before the error. It is kept for
    diagnostics only and is never reported as the response.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    message: str
    trace: Optional[str] = None
    partial_text: str = ""


RequestOutcome = Union[Success, Failure]


def _format_trace(exc: BaseException) -> Optional[str]:
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def failure_from(exc: BaseException, partial_text: str = "") -> Failure:
    """Build a Failure from an exception; the message falls back to its type name."""
    return Failure(
        message=str(exc) or type(exc).__name__,
        trace=_format_trace(exc),
        partial_text=partial_text,
    )


class ResponseAccumulator:
    """Running state for one request. Finalized exactly once."""

    def __init__(self):
        self.text = ""
        self.chunk_count = 0
        self.other_chunks = 0
        self._outcome: Optional[RequestOutcome] = None

    @property
    def finalized(self) -> bool:
        return self._outcome is not None

    def feed(self, chunk: ResponseChunk) -> None:
        if self._outcome is not None:
            raise RuntimeError("Accumulator already finalized")
        if isinstance(chunk, TextDeltaChunk):
            self.text += chunk.delta
            self.chunk_count += 1
        else:
            self.other_chunks += 1
            logger.debug(f"Skipping {chunk.type} chunk")

    def succeed(self) -> Success:
        self._finalize_check()
        self._outcome = Success(text=self.text, chunk_count=self.chunk_count)
        return self._outcome

    def fail(self, exc: BaseException) -> Failure:
        self._finalize_check()
        self._outcome = failure_from(exc, partial_text=self.text)
        return self._outcome

    def _finalize_check(self) -> None:
        if self._outcome is not None:
            raise RuntimeError("Accumulator already finalized")


async def accumulate(
    stream: AsyncIterable[ResponseChunk],
    on_delta: Optional[DeltaCallback] = None,
) -> RequestOutcome:
    """
    Drain stream into a single outcome.

    Only exceptions from the iteration step become a Failure. on_delta is
    a display hook: if it raises, the error is logged, the hook is dropped
    for the rest of the stream, and the outcome is unaffected. The stream
    is closed on every exit path. Task cancellation is not caught.
    """
    acc = ResponseAccumulator()
    chunks = stream.__aiter__()
    try:
        while True:
            try:
                chunk = await chunks.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                logger.debug(f"Stream failed after {acc.chunk_count} text chunk(s): {e}")
                return acc.fail(e)

            acc.feed(chunk)
            if on_delta is not None and isinstance(chunk, TextDeltaChunk):
                try:
                    on_delta(chunk.delta)
                except Exception:
                    logger.warning("Delta callback failed; further deltas will not be shown", exc_info=True)
                    on_delta = None
        return acc.succeed()
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

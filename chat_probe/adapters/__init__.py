"""
Adapters for streaming chat backends.

Protocol defines WHAT, implementations define HOW.
"""

from .base import ChatStreamer
from .openai_compat import ChatStream, OpenAICompatClient, stream_chat

__all__ = ["ChatStreamer", "ChatStream", "OpenAICompatClient", "stream_chat"]

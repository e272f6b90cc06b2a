"""
ChatStreamer Protocol - defines the contract for streaming chat backends.

This is the WHAT (interface), not the HOW (implementation).
See openai_compat.py for the concrete implementation.
"""

from typing import TYPE_CHECKING, Optional, Protocol

from chat_probe.config import ChatContext, Model

if TYPE_CHECKING:
    from chat_probe.adapters.openai_compat import ChatStream


class ChatStreamer(Protocol):
    """
    Contract for streaming chat backends.

    Implementations return a ChatStream: a lazy, single-pass async
    iterator of ResponseChunk values in provider emission order.
    Failures are raised out of the iteration step in progress, never
    yielded as chunk values.
    """

    def stream(
        self,
        model: Model,
        context: ChatContext,
        api_key: Optional[str] = None,
    ) -> "ChatStream":
        """
        Start a streaming chat request.

        Args:
            model: Resolved model from the registry
            context: Conversation to send
            api_key: Optional bearer token for the provider

        Returns:
            ChatStream yielding ResponseChunk values

        Raises:
            ProviderError from the iteration step that failed
        """
        ...

"""Exception types raised by chat-probe components."""


class ChatProbeError(Exception):
    """Base class for chat-probe errors."""
    pass


class ConfigError(ChatProbeError):
    """models.json / auth.json could not be produced or read."""
    pass


class ProviderError(ChatProbeError):
    """Human-readable error raised while streaming from a provider."""
    pass


class StreamCancelled(ChatProbeError):
    """Raised by a chat stream after it has been cancelled."""
    pass

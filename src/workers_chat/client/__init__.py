"""Client side of the gateway: stream consumer, session state and terminal UI."""

from .api import ChatClient, ChatClientError
from .session import ChatSession, SessionBusyError
from .stream_consumer import StreamConsumer, StreamState

__all__ = [
    "ChatClient",
    "ChatClientError",
    "ChatSession",
    "SessionBusyError",
    "StreamConsumer",
    "StreamState",
]
